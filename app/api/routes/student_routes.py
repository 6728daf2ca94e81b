"""
Student Routes

POST /students/signup - Create student account
POST /students/login - Login and get token
GET /students/profile - Get own profile
PUT /students/profile - Update profile
POST /students/projects - Add project (pending verification)
PUT /students/projects/{project_id} - Edit project
DELETE /students/projects/{project_id} - Remove project
PATCH /students/projects/{project_id}/favorite - Mark/unmark favorite
GET /students/projects/favorites - Favorite projects
GET /students/projects/github - Projects imported from GitHub
POST /students/certifications - Add certification
PUT /students/certifications/{cert_id} - Edit certification
DELETE /students/certifications/{cert_id} - Remove certification
POST /students/events - Add event participation
POST /students/coding-logs - Log a coding session
GET /students/readiness - Current readiness score and history
GET /students/leaderboard - Public readiness leaderboard
PUT /students/coding-profiles - Set coding platform usernames
POST /students/coding-sync - Pull LeetCode stats
POST /students/github/connect - Connect GitHub with an access token
DELETE /students/github/disconnect - Remove GitHub connection
POST /students/sync-github - Re-sync GitHub data and re-match active jobs
GET /students - List students (admin)
GET /students/{student_id} - Get student (admin)
DELETE /students/{student_id} - Delete student (admin)
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from app.api.deps import require_valid_id, signup_account, login_account
from app.core.auth import get_current_student, get_current_admin
from app.jobs.github_sync_job import sync_github_data
from app.services.github_client import GitHubClient, GitHubAPIError
from app.services.leetcode_service import fetch_leetcode_stats, LeetCodeError
from app.services.matching_service import get_matching_service
from app.services.mongo_service import get_student_service, serialize_doc, find_embedded
from app.services.readiness_service import refresh_readiness, calculate_readiness_score
from app.utils.dates import utcnow
from app.utils.token_crypto import encrypt_token, TokenCryptoError
from app.schemas.schemas import (
    StudentSignup, LoginRequest, TokenResponse, StudentProfileUpdate,
    ProjectCreate, ProjectUpdate, FavoriteUpdate, CertificationCreate, CertificationUpdate,
    EventCreate, CodingLogCreate, CodingProfilesUpdate, GitHubConnectRequest,
    GitHubSyncRequest, MessageResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/students", tags=["Students"])


def public_student(student: dict) -> dict:
    """Serialized student without secrets."""
    data = serialize_doc(student)
    data.pop("password_hash", None)
    if data.get("github_auth"):
        data["github_auth"] = {
            k: v for k, v in data["github_auth"].items() if k != "encrypted_access_token"
        }
    return data


def _reload(student_id) -> dict:
    return public_student(get_student_service().get_by_id(student_id))


# ============================================================
# AUTH
# ============================================================

@router.post("/signup", response_model=TokenResponse, status_code=201)
async def signup(data: StudentSignup):
    """Register a student account and return an access token."""
    return signup_account(get_student_service(), "student", data.model_dump())


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    return login_account(get_student_service(), "student", request.email, request.password)


# ============================================================
# PROFILE
# ============================================================

@router.get("/profile")
async def get_profile(student: dict = Depends(get_current_student)):
    return public_student(student)


@router.put("/profile")
async def update_profile(data: StudentProfileUpdate, student: dict = Depends(get_current_student)):
    """Update profile fields. Readiness is recalculated."""
    fields = data.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    get_student_service().update_fields(student["_id"], fields)
    refresh_readiness(student["_id"], get_student_service())
    return _reload(student["_id"])


@router.get("/readiness")
async def get_readiness(student: dict = Depends(get_current_student)):
    """Current readiness with breakdown and history."""
    result = calculate_readiness_score(student)
    return {
        "readiness_score": student.get("readiness_score") or 0,
        "calculated": result["total"],
        "breakdown": result["breakdown"],
        "history": serialize_doc(student.get("readiness_history") or []),
        "streak_days": student.get("streak_days") or 0,
    }


@router.get("/leaderboard")
async def leaderboard(limit: int = Query(20, ge=1, le=100)):
    """Public leaderboard by readiness score."""
    return serialize_doc(get_student_service().leaderboard(limit))


# ============================================================
# PROJECTS
# ============================================================

@router.post("/projects", status_code=201)
async def add_project(data: ProjectCreate, student: dict = Depends(get_current_student)):
    """Add a project. New projects start as pending until an admin verifies them."""
    service = get_student_service()
    project = service.add_item(student["_id"], "projects", {
        **data.model_dump(),
        "status": "pending",
        "verified": False,
        "is_favorite": False,
        "submitted_at": utcnow(),
    })
    refresh_readiness(student["_id"], service)
    return serialize_doc(project)


@router.get("/projects/favorites")
async def favorite_projects(student: dict = Depends(get_current_student)):
    return serialize_doc([p for p in student.get("projects") or [] if p.get("is_favorite")])


@router.get("/projects/github")
async def github_projects(student: dict = Depends(get_current_student)):
    """Projects imported from GitHub repositories."""
    return serialize_doc([p for p in student.get("projects") or [] if p.get("github_data")])


@router.put("/projects/{project_id}")
async def update_project(project_id: str, data: ProjectUpdate, student: dict = Depends(get_current_student)):
    """Edit a project. Edited projects go back to pending verification."""
    require_valid_id(project_id, "project id")
    if not find_embedded(student, "projects", project_id):
        raise HTTPException(status_code=404, detail="Project not found")

    fields = data.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    fields.update({"status": "pending", "verified": False})

    service = get_student_service()
    service.update_item(student["_id"], "projects", project_id, fields)
    refresh_readiness(student["_id"], service)
    return serialize_doc(find_embedded(service.get_by_id(student["_id"]), "projects", project_id))


@router.delete("/projects/{project_id}", response_model=MessageResponse)
async def delete_project(project_id: str, student: dict = Depends(get_current_student)):
    require_valid_id(project_id, "project id")
    service = get_student_service()
    if not service.remove_item(student["_id"], "projects", project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    refresh_readiness(student["_id"], service)
    return MessageResponse(message="Project removed")


@router.patch("/projects/{project_id}/favorite")
async def set_favorite(project_id: str, data: FavoriteUpdate, student: dict = Depends(get_current_student)):
    require_valid_id(project_id, "project id")
    service = get_student_service()
    if not service.update_item(student["_id"], "projects", project_id, {"is_favorite": data.is_favorite}):
        raise HTTPException(status_code=404, detail="Project not found")
    return serialize_doc(find_embedded(service.get_by_id(student["_id"]), "projects", project_id))


# ============================================================
# CERTIFICATIONS, EVENTS, CODING LOGS
# ============================================================

@router.post("/certifications", status_code=201)
async def add_certification(data: CertificationCreate, student: dict = Depends(get_current_student)):
    service = get_student_service()
    cert = service.add_item(student["_id"], "certifications", {
        **data.model_dump(),
        "status": "pending",
        "submitted_at": utcnow(),
    })
    refresh_readiness(student["_id"], service)
    return serialize_doc(cert)


@router.put("/certifications/{cert_id}")
async def update_certification(cert_id: str, data: CertificationUpdate, student: dict = Depends(get_current_student)):
    """Edit a certification. Edited certifications go back to pending verification."""
    require_valid_id(cert_id, "certification id")
    if not find_embedded(student, "certifications", cert_id):
        raise HTTPException(status_code=404, detail="Certification not found")

    fields = data.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    fields["status"] = "pending"

    service = get_student_service()
    service.update_item(student["_id"], "certifications", cert_id, fields)
    refresh_readiness(student["_id"], service)
    return serialize_doc(find_embedded(service.get_by_id(student["_id"]), "certifications", cert_id))


@router.delete("/certifications/{cert_id}", response_model=MessageResponse)
async def delete_certification(cert_id: str, student: dict = Depends(get_current_student)):
    require_valid_id(cert_id, "certification id")
    service = get_student_service()
    if not service.remove_item(student["_id"], "certifications", cert_id):
        raise HTTPException(status_code=404, detail="Certification not found")
    refresh_readiness(student["_id"], service)
    return MessageResponse(message="Certification removed")


@router.post("/events", status_code=201)
async def add_event(data: EventCreate, student: dict = Depends(get_current_student)):
    service = get_student_service()
    event = service.add_item(student["_id"], "events", {
        **data.model_dump(),
        "date": data.date or utcnow(),
        "status": "pending",
    })
    refresh_readiness(student["_id"], service)
    return serialize_doc(event)


@router.post("/coding-logs", status_code=201)
async def add_coding_log(data: CodingLogCreate, student: dict = Depends(get_current_student)):
    service = get_student_service()
    log = service.add_item(student["_id"], "coding_logs", {
        **data.model_dump(),
        "date": data.date or utcnow(),
    })
    readiness = refresh_readiness(student["_id"], service)
    return {"log": serialize_doc(log), "readiness": readiness}


# ============================================================
# CODING PLATFORMS
# ============================================================

@router.put("/coding-profiles")
async def update_coding_profiles(data: CodingProfilesUpdate, student: dict = Depends(get_current_student)):
    profiles = {**(student.get("coding_profiles") or {})}
    profiles.update({k: (v.strip() if v else v) for k, v in data.model_dump(exclude_unset=True).items()})
    get_student_service().update_fields(student["_id"], {"coding_profiles": profiles})
    return serialize_doc(profiles)


@router.post("/coding-sync")
def sync_coding_platforms(student: dict = Depends(get_current_student)):
    """Fetch LeetCode stats for the saved username and recalculate readiness."""
    username = (student.get("coding_profiles") or {}).get("leetcode")
    try:
        stats = fetch_leetcode_stats(username)
    except LeetCodeError as e:
        raise HTTPException(status_code=400, detail=str(e))

    service = get_student_service()
    service.update_fields(student["_id"], {
        "leetcode_stats": stats,
        "coding_profiles.last_synced_at": utcnow(),
    })
    readiness = refresh_readiness(student["_id"], service)
    return {"leetcode_stats": serialize_doc(stats), "readiness": readiness}


# ============================================================
# GITHUB
# ============================================================

@router.post("/github/connect")
def connect_github(data: GitHubConnectRequest, student: dict = Depends(get_current_student)):
    """
    Connect a GitHub account using a personal access token.
    The token is validated against GitHub, stored encrypted, and an
    initial sync runs.
    """
    try:
        github_user = GitHubClient(data.access_token).get_authenticated_user()
    except GitHubAPIError as e:
        raise HTTPException(status_code=400, detail=str(e))

    login = github_user.get("login")
    if data.username and data.username.strip().lower() != (login or "").lower():
        raise HTTPException(status_code=400, detail="Token does not belong to the given GitHub username")

    try:
        encrypted = encrypt_token(data.access_token)
    except TokenCryptoError as e:
        logger.error(f"GitHub token encryption failed: {e}")
        raise HTTPException(status_code=500, detail="GitHub token encryption is not configured")

    now = utcnow()
    service = get_student_service()
    service.update_fields(student["_id"], {
        "github_auth": {
            "username": login,
            "encrypted_access_token": encrypted,
            "avatar_url": github_user.get("avatar_url"),
            "connected_at": now,
            "last_verified_at": now,
        }
    })

    sync_result = sync_github_data(student["_id"], True, service)
    if sync_result["success"]:
        refresh_readiness(student["_id"], service)
    return {
        "message": "GitHub connected",
        "github": {"username": login, "avatar_url": github_user.get("avatar_url")},
        "sync": sync_result,
    }


@router.delete("/github/disconnect", response_model=MessageResponse)
async def disconnect_github(student: dict = Depends(get_current_student)):
    if not student.get("github_auth"):
        raise HTTPException(status_code=400, detail="GitHub is not connected")
    get_student_service().unset_fields(student["_id"], "github_auth", "github_stats")
    return MessageResponse(message="GitHub disconnected")


@router.post("/sync-github")
def sync_github(data: Optional[GitHubSyncRequest] = None, student: dict = Depends(get_current_student)):
    """Re-sync GitHub stats, skills and (optionally) projects, then re-match active jobs."""
    sync_projects = data.sync_projects if data else True
    service = get_student_service()
    result = sync_github_data(student["_id"], sync_projects, service)
    if not result["success"]:
        raise HTTPException(status_code=400, detail=result["error"])
    refresh_readiness(student["_id"], service)

    # synced skills and projects change match scores on open jobs
    result["jobs_rematched"] = get_matching_service().refresh_job_matches()
    return result


# ============================================================
# ADMIN ACCESS
# ============================================================

@router.get("")
async def list_students(
    college: Optional[str] = Query(None),
    admin: dict = Depends(get_current_admin)
):
    query = {"college": {"$regex": re.escape(college), "$options": "i"}} if college else None
    return [public_student(s) for s in get_student_service().list_students(query)]


@router.get("/{student_id}")
async def get_student(student_id: str, admin: dict = Depends(get_current_admin)):
    require_valid_id(student_id, "student id")
    student = get_student_service().get_by_id(student_id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return public_student(student)


@router.delete("/{student_id}", response_model=MessageResponse)
async def delete_student(student_id: str, admin: dict = Depends(get_current_admin)):
    require_valid_id(student_id, "student id")
    if not get_student_service().delete(student_id):
        raise HTTPException(status_code=404, detail="Student not found")
    return MessageResponse(message="Student deleted")
