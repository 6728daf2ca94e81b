"""
Tests for readiness score and activity streak calculation.
"""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import Mock

from bson import ObjectId

from app.services.readiness_service import (
    calculate_readiness_score,
    calculate_streak,
    refresh_readiness,
)


NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class TestReadinessScore:
    def test_empty_student(self):
        assert calculate_readiness_score(None) == {"total": 0, "breakdown": {}}
        assert calculate_readiness_score({}, now=NOW)["total"] == 0

    def test_components(self):
        student = {
            "projects": [{}, {}],
            "coding_logs": [
                {"date": NOW - timedelta(days=1), "platform": "LeetCode"},
                {"date": NOW - timedelta(days=2), "platform": "leetcode"},
                {"date": NOW - timedelta(days=3), "platform": "Codeforces"},
                {"date": NOW - timedelta(days=45), "platform": "HackerRank"},
            ],
            "certifications": [{}],
            "events": [{}, {}],
            "skill_radar": {"dsa": 80, "web": 60},
            "skills": ["Python", "SQL", "Git"],
            "streak_days": 10,
        }

        result = calculate_readiness_score(student, now=NOW)

        assert result["breakdown"] == {
            "projects": 24,
            "coding_consistency": 6,
            "certifications": 5,
            "events": 6,
            "skill_diversity": 10,
            "skill_radar": 7,
            "skills": 6,
            "streak_bonus": 2.0,
        }
        assert result["total"] == 66

    def test_total_is_capped(self):
        student = {
            "projects": [{}] * 10,
            "coding_logs": [
                {"date": NOW - timedelta(days=i % 20), "platform": f"p{i % 4}"} for i in range(30)
            ],
            "certifications": [{}] * 10,
            "events": [{}] * 10,
            "skill_radar": {"a": 100},
            "skills": ["x"] * 10,
            "streak_days": 100,
        }

        result = calculate_readiness_score(student, now=NOW)

        assert result["total"] == 100

    def test_malformed_fields_are_ignored(self):
        student = {"projects": "many", "skills": None, "skill_radar": ["not", "a", "dict"]}
        assert calculate_readiness_score(student, now=NOW)["total"] == 0


class TestStreak:
    def test_consecutive_days_ending_today(self):
        today = date(2026, 3, 15)
        student = {"coding_logs": [
            {"date": "2026-03-15T08:00:00Z"},
            {"date": "2026-03-14T22:00:00Z"},
            {"date": "2026-03-13T10:00:00Z"},
            {"date": "2026-03-10T10:00:00Z"},
        ]}

        assert calculate_streak(student, today=today) == (3, date(2026, 3, 15))

    def test_streak_survives_until_end_of_next_day(self):
        student = {"coding_logs": [{"date": "2026-03-14T08:00:00Z"}]}
        assert calculate_streak(student, today=date(2026, 3, 15)) == (1, date(2026, 3, 14))

    def test_broken_streak(self):
        student = {"coding_logs": [{"date": "2026-03-12T08:00:00Z"}]}
        assert calculate_streak(student, today=date(2026, 3, 15)) == (0, date(2026, 3, 12))

    def test_other_activity_counts(self):
        student = {
            "projects": [{"submitted_at": datetime(2026, 3, 15, tzinfo=timezone.utc)}],
            "leetcode_stats": {"fetched_at": datetime(2026, 3, 14, tzinfo=timezone.utc)},
        }
        assert calculate_streak(student, today=date(2026, 3, 15))[0] == 2

    def test_activity_sources(self):
        student = {
            "certifications": [{"issued_date": "2026-03-15T00:00:00Z"}],
            "events": [{"date": "2026-03-14T09:00:00Z"}],
            "coding_profiles": {"last_synced_at": datetime(2026, 3, 13, tzinfo=timezone.utc)},
            "github_stats": {"fetched_at": datetime(2026, 3, 12, tzinfo=timezone.utc)},
        }
        assert calculate_streak(student, today=date(2026, 3, 15)) == (4, date(2026, 3, 15))

    def test_leetcode_calendar_is_not_activity(self):
        today_ts = str(int(datetime(2026, 3, 15, tzinfo=timezone.utc).timestamp()))
        student = {"leetcode_stats": {
            "calendar": {today_ts: 3},
            "fetched_at": datetime(2026, 3, 1, tzinfo=timezone.utc),
        }}
        assert calculate_streak(student, today=date(2026, 3, 15)) == (0, date(2026, 3, 1))

    def test_no_activity(self):
        assert calculate_streak({}) == (0, None)


class TestRefreshReadiness:
    def test_missing_student(self):
        service = Mock()
        service.get_by_id.return_value = None
        assert refresh_readiness(ObjectId(), service) is None
        service.record_readiness.assert_not_called()

    def test_records_score_and_streak(self):
        student_id = ObjectId()
        service = Mock()
        service.get_by_id.return_value = {"_id": student_id, "projects": [{}], "skills": ["Python"]}

        result = refresh_readiness(student_id, service)

        assert result["total"] == 14
        service.update_fields.assert_called_once_with(student_id, {"streak_days": 0})
        service.record_readiness.assert_called_once_with(student_id, 14)
