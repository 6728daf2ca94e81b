"""
LeetCode stats via the public GraphQL endpoint.

fetch_leetcode_stats() returns a normalised stats dict:
difficulty counts, top problem domains, the submission calendar
(epoch seconds -> count), recent activity windows, streak and active days.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests

from app.core.config import get_settings
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

settings = get_settings()

REQUEST_TIMEOUT_SECONDS = 15
TOP_DOMAINS = 10

USER_PROFILE_QUERY = """
  query userProfile($username: String!, $year: Int!) {
    matchedUser(username: $username) {
      username
      submitStats: submitStatsGlobal {
        acSubmissionNum {
          difficulty
          count
        }
      }
      tagProblemCounts {
        advanced { tagName tagSlug problemsSolved }
        intermediate { tagName tagSlug problemsSolved }
        fundamental { tagName tagSlug problemsSolved }
      }
      userCalendar(year: $year) {
        streak
        totalActiveDays
        submissionCalendar
        activeYears
      }
    }
  }
"""


class LeetCodeError(Exception):
    """Raised when stats cannot be fetched; the message is safe to show users."""


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def normalise_difficulty_counts(ac_submission_num: List[dict]) -> dict:
    counts = {"total_solved": 0, "easy": 0, "medium": 0, "hard": 0}
    for entry in ac_submission_num or []:
        difficulty = entry.get("difficulty")
        if not difficulty:
            continue
        count = _to_int(entry.get("count"))
        if difficulty == "All":
            counts["total_solved"] = count
        elif difficulty.lower() in counts:
            counts[difficulty.lower()] = count

    if not counts["total_solved"]:
        counts["total_solved"] = counts["easy"] + counts["medium"] + counts["hard"]
    return counts


def flatten_tag_problem_counts(raw_counts: Any) -> List[dict]:
    """Merge advanced/intermediate/fundamental buckets into [{"tag", "count"}], largest first."""
    if not raw_counts:
        return []

    if isinstance(raw_counts, list):
        buckets = [raw_counts]
    else:
        buckets = [raw_counts.get(level) or [] for level in ("advanced", "intermediate", "fundamental")]

    aggregated: Dict[str, int] = {}
    for items in buckets:
        for entry in items or []:
            label = entry.get("tagName") or entry.get("tagSlug")
            count = _to_int(entry.get("problemsSolved") or entry.get("count"))
            if not label or not count:
                continue
            aggregated[label] = aggregated.get(label, 0) + count

    ranked = sorted(aggregated.items(), key=lambda item: item[1], reverse=True)
    return [{"tag": tag, "count": count} for tag, count in ranked]


def parse_calendar(calendar_payload: Optional[dict]) -> tuple:
    """
    Returns (calendar, meta). The submission calendar arrives either as a
    JSON string or an object; only positive counts with numeric keys are kept.
    """
    if not calendar_payload:
        return {}, {}

    raw = calendar_payload.get("submissionCalendar")
    calendar_obj = {}
    if isinstance(raw, str):
        try:
            calendar_obj = json.loads(raw) or {}
        except ValueError:
            calendar_obj = {}
    elif isinstance(raw, dict):
        calendar_obj = raw

    calendar = {}
    for epoch, raw_count in calendar_obj.items():
        count = _to_int(raw_count)
        if count <= 0:
            continue
        try:
            seconds = int(float(epoch))
        except (TypeError, ValueError):
            continue
        calendar[str(seconds)] = count

    meta = {
        "streak": _to_int(calendar_payload.get("streak")),
        "total_active_days": _to_int(calendar_payload.get("totalActiveDays")),
    }
    return calendar, meta


def compute_recent_activity(calendar: Dict[str, int], now: datetime = None) -> dict:
    now = now or utcnow()
    last_7_threshold = (now - timedelta(days=7)).timestamp()
    last_30_threshold = (now - timedelta(days=30)).timestamp()

    last_7 = 0
    last_30 = 0
    best_day = None
    for epoch, count in calendar.items():
        seconds = int(epoch)
        if seconds >= last_7_threshold:
            last_7 += count
        if seconds >= last_30_threshold:
            last_30 += count
        if best_day is None or count > best_day["count"]:
            best_day = {
                "date": datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat(),
                "count": count,
            }

    return {"last_7_days": last_7, "last_30_days": last_30, "best_day": best_day}


def build_stats(username: str, matched_user: dict, now: datetime = None) -> dict:
    now = now or utcnow()
    submit_stats = matched_user.get("submitStats") or matched_user.get("submitStatsGlobal") or {}
    difficulty = normalise_difficulty_counts(submit_stats.get("acSubmissionNum") or [])
    domains = flatten_tag_problem_counts(matched_user.get("tagProblemCounts"))
    calendar, meta = parse_calendar(matched_user.get("userCalendar"))
    activity = compute_recent_activity(calendar, now)

    first_key = min((int(k) for k in calendar), default=None)
    return {
        "username": username,
        **difficulty,
        "streak": meta.get("streak") or 0,
        "calendar": calendar,
        "top_domains": domains[:TOP_DOMAINS],
        "active_days": meta.get("total_active_days") or len(calendar),
        "recent_activity": {
            "last_7_days": activity["last_7_days"],
            "last_30_days": activity["last_30_days"],
        },
        "best_day": activity["best_day"],
        "calendar_range": {
            "start": datetime.fromtimestamp(first_key, tz=timezone.utc).isoformat() if first_key else None,
            "end": now.isoformat(),
        },
        "fetched_at": now,
    }


def fetch_leetcode_stats(raw_username: Any) -> dict:
    username = raw_username.strip() if isinstance(raw_username, str) else ""
    if not username:
        raise LeetCodeError("LeetCode username is required")

    try:
        response = requests.post(
            settings.leetcode_graphql_url,
            json={
                "query": USER_PROFILE_QUERY,
                "variables": {"username": username, "year": utcnow().year},
            },
            headers={"Referer": "https://leetcode.com"},
            timeout=REQUEST_TIMEOUT_SECONDS
        )
    except requests.RequestException as e:
        logger.error(f"LeetCode request failed for {username}: {e}")
        raise LeetCodeError("Unable to reach LeetCode. Please try again later.") from e

    try:
        payload = response.json()
    except ValueError:
        payload = None

    if not response.ok:
        message = None
        if isinstance(payload, dict):
            errors = payload.get("errors") or []
            message = (errors[0].get("message") if errors else None) or payload.get("message")
        raise LeetCodeError(message or f"LeetCode request failed with status {response.status_code}")

    if not isinstance(payload, dict):
        raise LeetCodeError("Failed to fetch LeetCode stats")

    if payload.get("errors"):
        raise LeetCodeError(payload["errors"][0].get("message") or "Failed to fetch LeetCode stats")

    matched_user = (payload.get("data") or {}).get("matchedUser")
    if not matched_user:
        raise LeetCodeError("LeetCode user not found")

    return build_stats(username, matched_user)
