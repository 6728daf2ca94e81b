"""
Tests for LeetCode GraphQL response normalisation and error mapping.
"""

import json
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from app.services import leetcode_service
from app.services.leetcode_service import (
    LeetCodeError,
    build_stats,
    fetch_leetcode_stats,
    flatten_tag_problem_counts,
    normalise_difficulty_counts,
    parse_calendar,
)


NOW = datetime(2026, 3, 15, tzinfo=timezone.utc)
DAY = 86400


def matched_user(calendar):
    return {
        "username": "asha",
        "submitStats": {"acSubmissionNum": [
            {"difficulty": "All", "count": 120},
            {"difficulty": "Easy", "count": 60},
            {"difficulty": "Medium", "count": 50},
            {"difficulty": "Hard", "count": 10},
        ]},
        "tagProblemCounts": {
            "advanced": [{"tagName": "Dynamic Programming", "tagSlug": "dp", "problemsSolved": 12}],
            "intermediate": [{"tagName": "Hash Table", "tagSlug": "hash-table", "problemsSolved": 30}],
            "fundamental": [{"tagName": "Array", "tagSlug": "array", "problemsSolved": 45}],
        },
        "userCalendar": {"streak": 6, "totalActiveDays": 40, "submissionCalendar": calendar},
    }


class TestNormalisation:
    def test_total_falls_back_to_sum(self):
        counts = normalise_difficulty_counts([
            {"difficulty": "Easy", "count": 3},
            {"difficulty": "Medium", "count": "2"},
            {"difficulty": "Hard", "count": None},
        ])
        assert counts == {"total_solved": 5, "easy": 3, "medium": 2, "hard": 0}

    def test_tag_buckets_are_merged(self):
        domains = flatten_tag_problem_counts({
            "advanced": [{"tagName": "Graph", "problemsSolved": 3}],
            "fundamental": [{"tagName": "Graph", "problemsSolved": 4}, {"tagName": "Math", "problemsSolved": 0}],
        })
        assert domains == [{"tag": "Graph", "count": 7}]

    def test_calendar_accepts_string_and_drops_non_positive(self):
        payload = {"submissionCalendar": json.dumps({"1700000000": 3, "1700086400": 0, "bad": 2})}
        calendar, meta = parse_calendar(payload)
        assert calendar == {"1700000000": 3}
        assert meta == {"streak": 0, "total_active_days": 0}

    def test_calendar_accepts_object_and_bad_json(self):
        assert parse_calendar({"submissionCalendar": {"1700000000": "4"}})[0] == {"1700000000": 4}
        assert parse_calendar({"submissionCalendar": "{not json"})[0] == {}
        assert parse_calendar(None) == ({}, {})


class TestBuildStats:
    def test_stats_shape(self):
        now_ts = int(NOW.timestamp())
        calendar = {
            str(now_ts - 2 * DAY): 5,
            str(now_ts - 10 * DAY): 9,
            str(now_ts - 60 * DAY): 2,
        }

        stats = build_stats("asha", matched_user(calendar), now=NOW)

        assert stats["total_solved"] == 120
        assert (stats["easy"], stats["medium"], stats["hard"]) == (60, 50, 10)
        assert stats["streak"] == 6
        assert stats["active_days"] == 40
        assert stats["top_domains"][0] == {"tag": "Array", "count": 45}
        assert stats["recent_activity"] == {"last_7_days": 5, "last_30_days": 14}
        assert stats["best_day"]["count"] == 9
        assert stats["calendar_range"]["end"] == NOW.isoformat()
        assert stats["fetched_at"] == NOW


class TestFetch:
    def _response(self, status=200, payload=None):
        response = Mock(ok=status < 400, status_code=status)
        response.json.return_value = payload
        return response

    def test_username_required(self):
        with pytest.raises(LeetCodeError, match="required"):
            fetch_leetcode_stats("   ")
        with pytest.raises(LeetCodeError):
            fetch_leetcode_stats(None)

    def test_network_failure(self):
        with patch.object(leetcode_service.requests, "post", side_effect=requests.Timeout()):
            with pytest.raises(LeetCodeError, match="Unable to reach LeetCode"):
                fetch_leetcode_stats("asha")

    def test_graphql_errors(self):
        payload = {"errors": [{"message": "That user does not exist."}]}
        with patch.object(leetcode_service.requests, "post", return_value=self._response(200, payload)):
            with pytest.raises(LeetCodeError, match="does not exist"):
                fetch_leetcode_stats("ghost")

    def test_unknown_user(self):
        payload = {"data": {"matchedUser": None}}
        with patch.object(leetcode_service.requests, "post", return_value=self._response(200, payload)):
            with pytest.raises(LeetCodeError, match="not found"):
                fetch_leetcode_stats("ghost")

    def test_http_error_status(self):
        with patch.object(leetcode_service.requests, "post", return_value=self._response(503, None)):
            with pytest.raises(LeetCodeError, match="503"):
                fetch_leetcode_stats("asha")

    def test_success_trims_username(self):
        payload = {"data": {"matchedUser": matched_user("{}")}}
        with patch.object(leetcode_service.requests, "post", return_value=self._response(200, payload)) as post:
            stats = fetch_leetcode_stats("  asha ")

        assert stats["username"] == "asha"
        assert post.call_args.kwargs["json"]["variables"]["username"] == "asha"
        assert post.call_args.kwargs["timeout"] == 15
