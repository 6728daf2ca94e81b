"""
Pytest configuration and shared fixtures.

No test touches MongoDB or the network: repositories, HTTP clients and the
LLM are replaced with unittest.mock objects.
"""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from bson import ObjectId


NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def offline_llm():
    """LLM client without an API key; every caller takes its fallback path."""
    llm = Mock()
    llm.is_configured = False
    return llm


@pytest.fixture
def student():
    return {
        "_id": ObjectId(),
        "name": "Asha Rao",
        "email": "asha@example.com",
        "college": "NIT Trichy",
        "branch": "CSE",
        "cgpa": 8.0,
        "skills": ["Python", "React"],
        "projects": [
            {
                "_id": ObjectId(),
                "title": "Placement Tracker",
                "tags": ["python", "fastapi"],
                "status": "verified",
                "verified": True,
                "github_link": "https://github.com/asha/placement-tracker",
            }
        ],
        "certifications": [{"_id": ObjectId(), "name": "AWS Cloud Practitioner", "status": "verified"}],
        "events": [],
        "coding_logs": [],
        "readiness_score": 80,
        "readiness_history": [],
        "leetcode_stats": {"streak": 40},
        "github_stats": {},
        "streak_days": 0,
    }


@pytest.fixture
def job():
    return {
        "_id": ObjectId(),
        "recruiter_id": ObjectId(),
        "title": "Backend Engineer",
        "company": "Acme",
        "required_skills": ["Python", "Docker"],
        "preferred_skills": [],
        "status": "draft",
        "matched_students": [],
    }


def make_repo(name, language="Python", stars=0, fork=False, private=False,
              topics=None, updated_at="2026-03-10T00:00:00Z", created_at="2025-01-01T00:00:00Z"):
    return {
        "name": name,
        "full_name": f"octo/{name}",
        "html_url": f"https://github.com/octo/{name}",
        "description": None,
        "language": language,
        "stargazers_count": stars,
        "forks_count": 0,
        "fork": fork,
        "private": private,
        "topics": topics or [],
        "updated_at": updated_at,
        "created_at": created_at,
        "owner": {"login": "octo"},
    }


@pytest.fixture
def repo_factory():
    return make_repo
