"""
HTTP-level tests: error envelope, auth guards and the main route flows with
repositories and external services replaced by mocks.
"""

from unittest.mock import Mock

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from app.api.routes import (
    admin_routes,
    interview_routes,
    job_routes,
    market_routes,
    notification_routes,
    recruiter_routes,
    student_routes,
)
from app.core.auth import (
    create_access_token,
    get_current_admin,
    get_current_recruiter,
    get_current_student,
    get_current_user,
)
from app.main import app
from app.services.leetcode_service import LeetCodeError
from app.services.matching_service import JobNotFoundError


@pytest.fixture
def client():
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def as_student(student):
    student = {**student, "role": "student"}
    app.dependency_overrides[get_current_student] = lambda: student
    app.dependency_overrides[get_current_user] = lambda: student
    return student


@pytest.fixture
def recruiter():
    recruiter = {"_id": ObjectId(), "name": "Ravi", "company": "Acme", "role": "recruiter", "saved_candidates": []}
    app.dependency_overrides[get_current_recruiter] = lambda: recruiter
    return recruiter


@pytest.fixture
def admin():
    admin = {"_id": ObjectId(), "name": "Admin", "role": "admin"}
    app.dependency_overrides[get_current_admin] = lambda: admin
    return admin


class TestErrorEnvelope:
    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.json() == {"message": "Not Found - /api/nothing-here"}

    def test_validation_error(self, client):
        response = client.post("/api/students/login", json={"email": "not-an-email"})
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation failed"
        assert {e["field"] for e in body["errors"]} >= {"email", "password"}

    def test_missing_token(self, client):
        response = client.get("/api/students/profile")
        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized, no token"

    def test_invalid_token(self, client):
        response = client.get("/api/students/profile", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized, token failed"

    def test_unknown_role(self, client):
        token = create_access_token(str(ObjectId()), "janitor")
        response = client.get("/api/notifications/unread-count", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403

    def test_health(self, client, monkeypatch):
        import app.main as main
        monkeypatch.setattr(main, "test_mongo_connection", lambda: False)
        body = client.get("/health").json()
        assert body["mongodb"] == "disconnected"
        assert "status" in body["market_refresh"]


class TestStudentRoutes:
    def test_leaderboard_is_public(self, client, monkeypatch):
        service = Mock()
        service.leaderboard.return_value = [{"_id": ObjectId(), "name": "Asha", "readiness_score": 91}]
        monkeypatch.setattr(student_routes, "get_student_service", lambda: service)

        response = client.get("/api/students/leaderboard?limit=5")

        assert response.status_code == 200
        assert response.json()[0]["name"] == "Asha"
        service.leaderboard.assert_called_once_with(5)

    def test_profile_hides_secrets(self, client, as_student):
        as_student["password_hash"] = "hash"
        as_student["github_auth"] = {"username": "asha", "encrypted_access_token": "enc"}

        body = client.get("/api/students/profile").json()

        assert "password_hash" not in body
        assert body["github_auth"] == {"username": "asha"}

    def test_add_project_starts_pending(self, client, as_student, monkeypatch):
        service = Mock()
        service.add_item.side_effect = lambda sid, array, item: {"_id": ObjectId(), **item}
        monkeypatch.setattr(student_routes, "get_student_service", lambda: service)
        refresh = Mock(return_value={"total": 30, "breakdown": {}})
        monkeypatch.setattr(student_routes, "refresh_readiness", refresh)

        response = client.post("/api/students/projects", json={"title": "Chat app", "tags": ["react"]})

        assert response.status_code == 201
        assert response.json()["status"] == "pending"
        assert response.json()["verified"] is False
        refresh.assert_called_once()

    def test_edit_unknown_project(self, client, as_student, monkeypatch):
        response = client.put(f"/api/students/projects/{ObjectId()}", json={"title": "Renamed"})
        assert response.status_code == 404

    def test_edit_certification_recomputes_readiness(self, client, as_student, monkeypatch):
        cert = as_student["certifications"][0]
        service = Mock()
        service.get_by_id.return_value = as_student
        monkeypatch.setattr(student_routes, "get_student_service", lambda: service)
        refresh = Mock(return_value={"total": 55, "breakdown": {}})
        monkeypatch.setattr(student_routes, "refresh_readiness", refresh)

        response = client.put(
            f"/api/students/certifications/{cert['_id']}",
            json={"issued_date": "2026-03-14T00:00:00Z"},
        )

        assert response.status_code == 200
        fields = service.update_item.call_args[0][3]
        assert fields["status"] == "pending"
        refresh.assert_called_once_with(as_student["_id"], service)

    def test_malformed_project_id(self, client, as_student):
        response = client.delete("/api/students/projects/not-an-id")
        assert response.status_code == 400

    def test_coding_sync_maps_leetcode_errors(self, client, as_student, monkeypatch):
        def fail(username):
            raise LeetCodeError("LeetCode user not found")
        monkeypatch.setattr(student_routes, "fetch_leetcode_stats", fail)

        response = client.post("/api/students/coding-sync")

        assert response.status_code == 400
        assert response.json()["message"] == "LeetCode user not found"

    def test_sync_github_failure_is_400(self, client, as_student, monkeypatch):
        monkeypatch.setattr(
            student_routes, "sync_github_data",
            lambda *args, **kwargs: {"success": False, "error": "No GitHub OAuth connection found"}
        )
        response = client.post("/api/students/sync-github", json={"sync_projects": True})
        assert response.status_code == 400

    def test_sync_github_rematches_active_jobs(self, client, as_student, monkeypatch):
        monkeypatch.setattr(
            student_routes, "sync_github_data",
            lambda *args, **kwargs: {"success": True, "repos_synced": 4}
        )
        monkeypatch.setattr(student_routes, "get_student_service", lambda: Mock())
        refresh = Mock(return_value={"total": 60, "breakdown": {}})
        monkeypatch.setattr(student_routes, "refresh_readiness", refresh)
        matcher = Mock()
        matcher.refresh_job_matches.return_value = 3
        monkeypatch.setattr(student_routes, "get_matching_service", lambda: matcher)

        response = client.post("/api/students/sync-github", json={"sync_projects": False})

        assert response.status_code == 200
        assert response.json()["jobs_rematched"] == 3
        refresh.assert_called_once()
        matcher.refresh_job_matches.assert_called_once_with()

    def test_students_cannot_list_students(self, client, as_student):
        response = client.get("/api/students")
        assert response.status_code == 403


class TestRecruiterRoutes:
    def test_talent_pool_filters_and_scores(self, client, recruiter, monkeypatch):
        service = Mock()
        service.list_students.return_value = [
            {"_id": ObjectId(), "name": "A", "skills": ["Python"], "readiness_score": 60},
            {"_id": ObjectId(), "name": "B", "skills": ["Java"], "readiness_score": 90},
        ]
        monkeypatch.setattr(recruiter_routes, "get_student_service", lambda: service)

        response = client.get("/api/recruiters/students?skills=python,&college=N.I.T")

        assert response.status_code == 200
        body = response.json()
        assert [s["name"] for s in body] == ["A"]
        assert "dynamic_score" in body[0]
        query = service.list_students.call_args[0][0]
        assert query["college"]["$regex"] == r"N\.I\.T"

    def test_save_unknown_candidate(self, client, recruiter, monkeypatch):
        service = Mock()
        service.get_by_id.return_value = None
        monkeypatch.setattr(recruiter_routes, "get_student_service", lambda: service)

        response = client.post(f"/api/recruiters/saved/{ObjectId()}")

        assert response.status_code == 404


class TestJobRoutes:
    @pytest.fixture
    def job_service(self, monkeypatch, recruiter, job):
        job["recruiter_id"] = recruiter["_id"]
        service = Mock()
        service.get_by_id.return_value = job
        monkeypatch.setattr(job_routes, "get_job_service", lambda: service)
        return service

    def test_other_recruiters_job_is_forbidden(self, client, recruiter, job_service, job):
        job["recruiter_id"] = ObjectId()
        response = client.get(f"/api/jobs/{job['_id']}")
        assert response.status_code == 403

    def test_get_job_counts_view(self, client, job_service, job):
        response = client.get(f"/api/jobs/{job['_id']}")
        assert response.status_code == 200
        job_service.increment_views.assert_called_once_with(job["_id"])

    def test_expired_job_is_reported_and_stored(self, client, job_service, job):
        from datetime import datetime, timezone
        job["status"] = "active"
        job["expires_at"] = datetime(2020, 1, 1, tzinfo=timezone.utc)

        response = client.get(f"/api/jobs/{job['_id']}")

        assert response.json()["status"] == "expired"
        job_service.update_fields.assert_called_once_with(job["_id"], {"status": "expired"})

    def test_create_parses_skills_from_description(self, client, recruiter, monkeypatch):
        service = Mock()
        service.create.side_effect = lambda data: {"_id": ObjectId(), "status": "draft", **data}
        monkeypatch.setattr(job_routes, "get_job_service", lambda: service)
        monkeypatch.setattr(
            job_routes, "parse_job_description_to_skills",
            lambda description: {"required_skills": ["Python"], "preferred_skills": ["Redis"]}
        )

        response = client.post("/api/jobs", json={
            "title": "Backend Engineer", "location": "Bengaluru",
            "description": "Python services with Redis caching",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["required_skills"] == ["Python"]
        assert body["preferred_skills"] == ["Redis"]
        assert body["company"] == "Acme"
        assert body["recruiter_id"] == str(recruiter["_id"])

    def test_activating_through_update_stamps_posted_at(self, client, job_service, job):
        job_service.update_fields.side_effect = lambda job_id, fields: {**job, **fields}

        response = client.put(f"/api/jobs/{job['_id']}", json={"status": "active"})

        assert response.status_code == 200
        fields = job_service.update_fields.call_args[0][1]
        assert fields["status"] == "active"
        assert "posted_at" in fields
        assert response.json()["matches_cleared"] is False

    def test_update_keeps_posted_at_of_active_job(self, client, job_service, job):
        job["status"] = "active"
        job_service.update_fields.side_effect = lambda job_id, fields: {**job, **fields}

        client.put(f"/api/jobs/{job['_id']}", json={"status": "active", "title": "Senior Backend Engineer"})

        assert "posted_at" not in job_service.update_fields.call_args[0][1]

    def test_changing_criteria_clears_matches(self, client, job_service, job):
        job_service.update_fields.side_effect = lambda job_id, fields: {**job, **fields}

        response = client.put(f"/api/jobs/{job['_id']}", json={"required_skills": ["Go"]})

        fields = job_service.update_fields.call_args[0][1]
        assert fields["matched_students"] == []
        assert fields["match_count"] == 0
        assert response.json()["matches_cleared"] is True

    def test_match_maps_missing_job_to_404(self, client, job_service, job, monkeypatch):
        matcher = Mock()
        matcher.match_students_to_job.side_effect = JobNotFoundError("Job not found")
        monkeypatch.setattr(job_routes, "get_matching_service", lambda: matcher)

        response = client.post(f"/api/jobs/{job['_id']}/match")

        assert response.status_code == 404

    def test_publish_matches_and_notifies(self, client, job_service, job, monkeypatch):
        student_id = ObjectId()
        published = {**job, "status": "active", "matched_students": [{"student_id": student_id, "match_score": 70}]}
        job_service.update_fields.return_value = {**job, "status": "active"}
        job_service.get_by_id.side_effect = [job, published]
        matcher = Mock()
        matcher.match_students_to_job.return_value = {"match_count": 1}
        monkeypatch.setattr(job_routes, "get_matching_service", lambda: matcher)
        notify = Mock(return_value=1)
        monkeypatch.setattr(job_routes, "notify_job_matches", notify)

        response = client.post(f"/api/jobs/{job['_id']}/publish")

        assert response.status_code == 200
        assert response.json()["notified"] == 1
        assert notify.call_args[0][1] == [student_id]
        assert job_service.update_fields.call_args[0][1]["status"] == "active"

    def test_stats(self, client, job_service, job):
        job["matched_students"] = [{"match_score": 90}, {"match_score": 65}, {"match_score": 40}]
        body = client.get(f"/api/jobs/{job['_id']}/stats").json()
        assert body["average_match_score"] == 65
        assert body["score_distribution"] == {"excellent": 1, "good": 1, "potential": 1}


class TestAdminRoutes:
    def test_signup_code_enforced(self, client, monkeypatch):
        from types import SimpleNamespace
        monkeypatch.setattr(admin_routes, "get_settings", lambda: SimpleNamespace(admin_signup_code="s3cret"))

        response = client.post("/api/admin/signup", json={
            "name": "Admin", "email": "admin@example.com", "password": "password1", "signup_code": "wrong"
        })

        assert response.status_code == 403

    def test_verify_project(self, client, admin, monkeypatch, student):
        project_id = student["projects"][0]["_id"]
        service = Mock()
        service.get_by_id.return_value = student
        monkeypatch.setattr(admin_routes, "get_student_service", lambda: service)
        monkeypatch.setattr(admin_routes, "refresh_readiness", lambda sid, svc: {"total": 42})
        notify = Mock(return_value=True)
        monkeypatch.setattr(admin_routes, "notify_verification_result", notify)

        response = client.post("/api/admin/verify", json={
            "student_id": str(student["_id"]), "item_type": "project",
            "item_id": str(project_id), "status": "rejected", "feedback": "Add a README",
        })

        assert response.status_code == 200
        assert response.json()["readiness_score"] == 42
        fields = service.update_item.call_args[0][3]
        assert fields["status"] == "rejected"
        assert fields["verified"] is False
        notify.assert_called_once_with(
            str(student["_id"]), "project", "Placement Tracker", "rejected", "Add a README"
        )

    def test_verify_unknown_item(self, client, admin, monkeypatch, student):
        service = Mock()
        service.get_by_id.return_value = student
        monkeypatch.setattr(admin_routes, "get_student_service", lambda: service)

        response = client.post("/api/admin/verify", json={
            "student_id": str(student["_id"]), "item_type": "event",
            "item_id": str(ObjectId()), "status": "verified",
        })

        assert response.status_code == 404

    def test_market_refresh_in_progress(self, client, admin, monkeypatch):
        refresher = Mock()
        refresher.trigger_manual_refresh.return_value = None
        monkeypatch.setattr(admin_routes, "get_market_refresher", lambda: refresher)

        response = client.post("/api/admin/market/refresh")

        assert response.status_code == 409

    def test_pending_items_flattened(self, client, admin, monkeypatch, student):
        student["projects"][0]["status"] = "pending"
        student["events"] = [{"_id": ObjectId(), "name": "Hackathon", "status": "verified"}]
        service = Mock()
        service.find_with_pending_items.return_value = [student]
        monkeypatch.setattr(admin_routes, "get_student_service", lambda: service)

        body = client.get("/api/admin/pending").json()

        assert body["count"] == 1
        assert body["items"][0]["item_type"] == "project"

    def test_pending_items_oldest_first(self, client, admin, monkeypatch, student):
        from datetime import datetime, timezone
        student["projects"] = [
            {"_id": ObjectId(), "title": "Newer", "status": "pending",
             "submitted_at": datetime(2026, 3, 10, tzinfo=timezone.utc)},
            {"_id": ObjectId(), "title": "Older", "status": "pending",
             "submitted_at": datetime(2026, 1, 1, tzinfo=timezone.utc)},
        ]
        student["certifications"] = []
        student["events"] = [{"_id": ObjectId(), "name": "Hackathon", "status": "pending",
                              "date": datetime(2026, 2, 1, tzinfo=timezone.utc)}]
        service = Mock()
        service.find_with_pending_items.return_value = [student]
        monkeypatch.setattr(admin_routes, "get_student_service", lambda: service)

        items = client.get("/api/admin/pending").json()["items"]

        assert [i["item"].get("title") or i["item"]["name"] for i in items] == ["Older", "Hackathon", "Newer"]


class TestInterviewRoutes:
    def test_foreign_session_is_hidden(self, client, as_student, monkeypatch):
        sessions = Mock()
        sessions.get_by_id.return_value = {"_id": ObjectId(), "student_id": ObjectId()}
        monkeypatch.setattr(interview_routes, "get_interview_service", lambda: sessions)

        response = client.get(f"/api/interviews/{ObjectId()}")

        assert response.status_code == 404

    def test_start(self, client, as_student, monkeypatch):
        interviews = Mock()
        interviews.start_session.return_value = {
            "_id": ObjectId(), "questions_target": 5,
            "questions": [{"id": "q1", "question": "Why this role?", "type": "behavioral"}],
        }
        monkeypatch.setattr(interview_routes, "get_mock_interview_service", lambda: interviews)

        response = client.post("/api/interviews/start", json={"target_role": "SDE", "questions_target": 5})

        assert response.status_code == 201
        assert response.json()["question"]["question"] == "Why this role?"
        assert interviews.start_session.call_args.kwargs["difficulty"] == "intermediate"


class TestNotificationAndMarketRoutes:
    def test_mark_read_not_found(self, client, as_student, monkeypatch):
        service = Mock()
        service.mark_read.return_value = False
        monkeypatch.setattr(notification_routes, "get_notification_service", lambda: service)

        response = client.patch(f"/api/notifications/{ObjectId()}/read")

        assert response.status_code == 404

    def test_read_all_is_not_treated_as_an_id(self, client, as_student, monkeypatch):
        service = Mock()
        service.mark_all_read.return_value = 3
        monkeypatch.setattr(notification_routes, "get_notification_service", lambda: service)

        response = client.patch("/api/notifications/read-all")

        assert response.json()["updated"] == 3

    def test_list_unread_only(self, client, as_student, monkeypatch):
        service = Mock()
        service.list_for.return_value = [{"_id": ObjectId(), "title": "Project verified", "read": False}]
        service.unread_count.return_value = 1
        monkeypatch.setattr(notification_routes, "get_notification_service", lambda: service)

        body = client.get("/api/notifications?unread_only=true&limit=10").json()

        assert body["unread_count"] == 1
        assert body["notifications"][0]["title"] == "Project verified"
        service.list_for.assert_called_once_with(as_student["_id"], unread_only=True, limit=10)

    def test_unread_count(self, client, as_student, monkeypatch):
        service = Mock()
        service.unread_count.return_value = 4
        monkeypatch.setattr(notification_routes, "get_notification_service", lambda: service)

        assert client.get("/api/notifications/unread-count").json() == {"unread_count": 4}
        service.unread_count.assert_called_once_with(as_student["_id"])

    def test_delete(self, client, as_student, monkeypatch):
        notification_id = str(ObjectId())
        service = Mock()
        service.delete.side_effect = [True, False]
        monkeypatch.setattr(notification_routes, "get_notification_service", lambda: service)

        assert client.delete(f"/api/notifications/{notification_id}").status_code == 200
        service.delete.assert_called_with(notification_id, as_student["_id"])
        assert client.delete(f"/api/notifications/{notification_id}").status_code == 404

    def test_trends(self, client, monkeypatch):
        service = Mock()
        service.list_by_trend.side_effect = lambda trend, limit: [{"skill_name": f"{trend}-skill"}]
        monkeypatch.setattr(market_routes, "get_market_data_service", lambda: service)

        body = client.get("/api/market/trends").json()

        assert body["rising"][0]["skill_name"] == "rising-skill"
        assert body["declining"][0]["skill_name"] == "declining-skill"
