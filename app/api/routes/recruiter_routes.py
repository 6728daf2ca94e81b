"""
Recruiter Routes

POST /recruiters/signup - Create recruiter account
POST /recruiters/login - Login and get token
GET /recruiters/profile - Get own profile
PUT /recruiters/profile - Update profile and preferences
GET /recruiters/students - Talent pool with dynamic scores and filters
GET /recruiters/students/{student_id} - Student detail
GET /recruiters/saved - Saved candidates
POST /recruiters/saved/{student_id} - Save a candidate
DELETE /recruiters/saved/{student_id} - Remove a saved candidate
"""

import re
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from app.api.deps import require_valid_id, signup_account, login_account
from app.api.routes.student_routes import public_student
from app.core.auth import get_current_recruiter
from app.services.matching_service import filter_talent_pool
from app.services.mongo_service import get_recruiter_service, get_student_service, serialize_doc
from app.schemas.schemas import RecruiterSignup, LoginRequest, TokenResponse, RecruiterProfileUpdate

router = APIRouter(prefix="/recruiters", tags=["Recruiters"])

# Fields recruiters see in the talent pool listing
TALENT_POOL_FIELDS = {
    "name": 1, "email": 1, "phone": 1, "location": 1, "college": 1, "branch": 1, "cgpa": 1,
    "readiness_score": 1, "badges": 1, "projects": 1, "certifications": 1, "skill_radar": 1,
    "streak_days": 1, "skills": 1, "avatar_url": 1,
}


@router.post("/signup", response_model=TokenResponse, status_code=201)
async def signup(data: RecruiterSignup):
    return signup_account(get_recruiter_service(), "recruiter", data.model_dump())


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    return login_account(get_recruiter_service(), "recruiter", request.email, request.password)


@router.get("/profile")
async def get_profile(recruiter: dict = Depends(get_current_recruiter)):
    return serialize_doc(recruiter)


@router.put("/profile")
async def update_profile(data: RecruiterProfileUpdate, recruiter: dict = Depends(get_current_recruiter)):
    fields = data.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    fields["profile_completed"] = True
    updated = get_recruiter_service().update_fields(recruiter["_id"], fields)
    return serialize_doc(updated)


@router.get("/students")
async def list_students(
    skills: Optional[str] = Query(None, description="Comma-separated skills"),
    min_score: int = Query(0, ge=0, le=100),
    college: Optional[str] = Query(None),
    min_projects: int = Query(0, ge=0),
    min_cgpa: float = Query(0, ge=0, le=10),
    recruiter: dict = Depends(get_current_recruiter)
):
    """
    Talent pool. Every student gets a dynamic score against the skill
    filter; results are filtered and sorted by that score.
    """
    query = {"college": {"$regex": re.escape(college), "$options": "i"}} if college else None
    students = get_student_service().list_students(query, TALENT_POOL_FIELDS)

    filters = {
        "skills": [s.strip() for s in skills.split(",") if s.strip()] if skills else [],
        "min_score": min_score,
        "min_projects": min_projects,
        "min_cgpa": min_cgpa,
    }
    return serialize_doc(filter_talent_pool(students, filters))


@router.get("/students/{student_id}")
async def get_student(student_id: str, recruiter: dict = Depends(get_current_recruiter)):
    require_valid_id(student_id, "student id")
    student = get_student_service().get_by_id(student_id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    data = public_student(student)
    data.pop("github_auth", None)
    return data


@router.get("/saved")
async def saved_candidates(recruiter: dict = Depends(get_current_recruiter)):
    students = get_student_service().get_many(recruiter.get("saved_candidates") or [])
    return [
        {
            "_id": str(s["_id"]),
            "name": s.get("name"),
            "college": s.get("college"),
            "branch": s.get("branch"),
            "readiness_score": s.get("readiness_score") or 0,
            "skills": s.get("skills") or [],
            "avatar_url": s.get("avatar_url"),
        }
        for s in students
    ]


@router.post("/saved/{student_id}")
async def save_candidate(student_id: str, recruiter: dict = Depends(get_current_recruiter)):
    require_valid_id(student_id, "student id")
    if not get_student_service().get_by_id(student_id, projection={"_id": 1}):
        raise HTTPException(status_code=404, detail="Student not found")

    service = get_recruiter_service()
    service.save_candidate(recruiter["_id"], student_id)
    updated = service.get_by_id(recruiter["_id"])
    return {"message": "Candidate saved", "saved_candidates": serialize_doc(updated.get("saved_candidates") or [])}


@router.delete("/saved/{student_id}")
async def remove_candidate(student_id: str, recruiter: dict = Depends(get_current_recruiter)):
    require_valid_id(student_id, "student id")
    service = get_recruiter_service()
    service.remove_candidate(recruiter["_id"], student_id)
    updated = service.get_by_id(recruiter["_id"])
    return {"message": "Candidate removed", "saved_candidates": serialize_doc(updated.get("saved_candidates") or [])}
