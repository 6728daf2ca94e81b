"""
Readiness Score Service

Readiness is a 0-100 placement-preparedness score built from a student's
portfolio and activity:

    projects            min(n * 12, 30)
    coding consistency  min(logs in last 30 days * 2, 20)
    certifications      min(n * 5, 20)
    events              min(n * 3, 10)
    platform diversity  min(distinct platforms in last 30 days * 5, 10)
    skill radar         average / 100 * 10, capped at 10
    skills              min(n * 2, 10)
    streak bonus        min(streak_days * 0.2, 5)

The activity streak (consecutive active days ending today or yesterday) is
recomputed alongside, since it feeds the streak bonus.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Optional, Tuple

from app.services.mongo_service import StudentService
from app.utils.dates import utcnow, parse_datetime
from app.utils.scoring import round_half_up, as_list

logger = logging.getLogger(__name__)

CONSISTENCY_WINDOW_DAYS = 30


def calculate_readiness_score(student: Optional[dict], now: datetime = None) -> dict:
    """Returns {"total": int, "breakdown": {...}}."""
    if not student:
        return {"total": 0, "breakdown": {}}

    now = now or utcnow()
    window_start = now - timedelta(days=CONSISTENCY_WINDOW_DAYS)

    recent_logs = []
    for log in as_list(student.get("coding_logs")):
        logged_at = parse_datetime(log.get("date") or log.get("created_at"))
        if logged_at and logged_at > window_start:
            recent_logs.append(log)

    platforms = {
        str(log.get("platform")).lower() for log in recent_logs if log.get("platform")
    }

    project_score = min(len(as_list(student.get("projects"))) * 12, 30)
    consistency_score = min(len(recent_logs) * 2, 20)
    certification_score = min(len(as_list(student.get("certifications"))) * 5, 20)
    event_score = min(len(as_list(student.get("events"))) * 3, 10)
    diversity_score = min(len(platforms) * 5, 10)

    radar_score = 0
    radar = student.get("skill_radar")
    if isinstance(radar, dict) and radar:
        values = [v for v in radar.values() if isinstance(v, (int, float))]
        if values:
            average = sum(values) / len(values)
            radar_score = min(int(round_half_up(average / 100 * 10)), 10)

    skills_score = min(len(as_list(student.get("skills"))) * 2, 10)
    streak_bonus = min((student.get("streak_days") or 0) * 0.2, 5)

    breakdown = {
        "projects": project_score,
        "coding_consistency": consistency_score,
        "certifications": certification_score,
        "events": event_score,
        "skill_diversity": diversity_score,
        "skill_radar": radar_score,
        "skills": skills_score,
        "streak_bonus": streak_bonus,
    }
    total = min(100, int(round_half_up(sum(breakdown.values()))))
    return {"total": total, "breakdown": breakdown}


def _activity_dates(student: dict) -> set:
    dates = set()

    def add(value: Any):
        parsed = parse_datetime(value)
        if parsed:
            dates.add(parsed.date())

    for log in as_list(student.get("coding_logs")):
        add(log.get("date"))
    for project in as_list(student.get("projects")):
        add(project.get("submitted_at") or project.get("created_at"))
    for cert in as_list(student.get("certifications")):
        add(cert.get("issued_date") or cert.get("created_at"))
    for event in as_list(student.get("events")):
        add(event.get("date") or event.get("created_at"))

    add((student.get("leetcode_stats") or {}).get("fetched_at"))
    add((student.get("github_stats") or {}).get("fetched_at"))
    add((student.get("coding_profiles") or {}).get("last_synced_at"))
    add(student.get("last_active_at"))
    return dates


def calculate_streak(student: Optional[dict], today: date = None) -> Tuple[int, Optional[date]]:
    """
    Consecutive active days counted back from the most recent activity.
    The streak is 0 when the latest activity is older than yesterday.
    Returns (streak_days, last_active_date).
    """
    if not student:
        return 0, None

    dates = sorted(_activity_dates(student), reverse=True)
    if not dates:
        return 0, None

    today = today or utcnow().date()
    most_recent = dates[0]
    if most_recent < today - timedelta(days=1):
        return 0, most_recent

    streak = 0
    expected = most_recent
    for day in dates:
        if day == expected:
            streak += 1
            expected = day - timedelta(days=1)
        else:
            break
    return streak, most_recent


def refresh_readiness(student_id: Any, student_service: StudentService = None) -> Optional[dict]:
    """
    Recompute streak and readiness for a student, persist both and append
    the score to readiness history. Returns the score dict, or None when
    the student does not exist.
    """
    student_service = student_service or StudentService()
    student = student_service.get_by_id(student_id)
    if not student:
        return None

    streak_days, _ = calculate_streak(student)
    student["streak_days"] = streak_days
    student_service.update_fields(student["_id"], {"streak_days": streak_days})

    result = calculate_readiness_score(student)
    student_service.record_readiness(student["_id"], result["total"])
    logger.info(f"Readiness for student {student['_id']}: {result['total']} (streak {streak_days})")
    return result
