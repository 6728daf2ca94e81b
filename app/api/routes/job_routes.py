"""
Job Routes

POST /jobs - Create job posting (draft)
GET /jobs - List own jobs, optional status filter
GET /jobs/{job_id} - Get job details
PUT /jobs/{job_id} - Update job
DELETE /jobs/{job_id} - Delete job
POST /jobs/{job_id}/publish - Activate job, match students and notify them
POST /jobs/{job_id}/match - Re-run matching
GET /jobs/{job_id}/matches - Cached matches with student summaries
GET /jobs/{job_id}/matches/{student_id}/explain - Score breakdown for one student
GET /jobs/{job_id}/stats - Posting statistics
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from app.api.deps import require_valid_id
from app.core.auth import get_current_recruiter
from app.services.matching_service import (
    JobNotFoundError,
    get_matching_service,
    generate_job_description,
    parse_job_description_to_skills,
)
from app.services.mongo_service import get_job_service, serialize_doc, serialize_docs
from app.services.notification_service import notify_job_matches
from app.schemas.schemas import JobCreate, JobUpdate, JobStatus, MessageResponse
from app.utils.dates import utcnow, ensure_aware
from app.utils.scoring import round_half_up, as_list

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])

# Changing any of these invalidates the cached matches
MATCH_CRITERIA_FIELDS = (
    "required_skills", "preferred_skills", "min_readiness_score", "min_cgpa", "min_projects"
)


def apply_expiry(job: dict, job_service=None) -> dict:
    """An active job past its expires_at is reported and stored as expired."""
    expires_at = ensure_aware(job.get("expires_at"))
    if job.get("status") == "active" and expires_at and expires_at < utcnow():
        job["status"] = "expired"
        (job_service or get_job_service()).update_fields(job["_id"], {"status": "expired"})
    return job


def get_owned_job(job_id: str, recruiter: dict) -> dict:
    require_valid_id(job_id, "job id")
    job = get_job_service().get_by_id(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    if job.get("recruiter_id") != recruiter["_id"]:
        raise HTTPException(status_code=403, detail="Not authorized to access this job")
    return apply_expiry(job)


@router.post("", status_code=201)
def create_job(data: JobCreate, recruiter: dict = Depends(get_current_recruiter)):
    """
    Create a draft job. Skills are extracted from the description when
    none are given; the description can be generated from the skills.
    """
    job_data = data.model_dump()
    generate = job_data.pop("generate_description")
    job_data["job_type"] = data.job_type.value
    job_data["company"] = job_data.get("company") or recruiter.get("company")

    if job_data.get("description") and not job_data["required_skills"]:
        parsed = parse_job_description_to_skills(job_data["description"])
        job_data["required_skills"] = parsed["required_skills"]
        job_data["preferred_skills"] = job_data["preferred_skills"] or parsed["preferred_skills"]

    if generate or not job_data.get("description"):
        generated = generate_job_description(job_data)
        job_data["description"] = job_data.get("description") or generated["description"]
        job_data["responsibilities"] = job_data["responsibilities"] or generated["responsibilities"]
        job_data["qualifications"] = job_data["qualifications"] or generated["qualifications"]

    job_data["recruiter_id"] = recruiter["_id"]
    job = get_job_service().create(job_data)
    logger.info(f"Recruiter {recruiter['_id']} created job '{job['title']}'")
    return serialize_doc(job)


@router.get("")
async def list_jobs(
    status: Optional[JobStatus] = Query(None),
    recruiter: dict = Depends(get_current_recruiter)
):
    job_service = get_job_service()
    jobs = [apply_expiry(job, job_service) for job in job_service.list_by_recruiter(recruiter["_id"])]
    if status:
        jobs = [job for job in jobs if job.get("status") == status.value]
    return serialize_docs([
        {k: v for k, v in job.items() if k != "matched_students"} for job in jobs
    ])


@router.get("/{job_id}")
async def get_job(job_id: str, recruiter: dict = Depends(get_current_recruiter)):
    job = get_owned_job(job_id, recruiter)
    get_job_service().increment_views(job["_id"])
    job["view_count"] = (job.get("view_count") or 0) + 1
    return serialize_doc(job)


@router.put("/{job_id}")
async def update_job(job_id: str, data: JobUpdate, recruiter: dict = Depends(get_current_recruiter)):
    """
    Update a job. Activating a job here stamps posted_at; changing the
    matching criteria clears the cached matches.
    """
    job = get_owned_job(job_id, recruiter)
    fields = data.model_dump(exclude_unset=True, mode="json")
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    if data.expires_at is not None:
        fields["expires_at"] = data.expires_at

    if fields.get("status") == "active" and job.get("status") != "active":
        fields["posted_at"] = utcnow()

    matches_cleared = any(field in fields for field in MATCH_CRITERIA_FIELDS)
    if matches_cleared:
        fields.update({"matched_students": [], "match_count": 0, "last_matched_at": None})

    updated = get_job_service().update_fields(job["_id"], fields)
    return {**serialize_doc(apply_expiry(updated)), "matches_cleared": matches_cleared}


@router.delete("/{job_id}", response_model=MessageResponse)
async def delete_job(job_id: str, recruiter: dict = Depends(get_current_recruiter)):
    job = get_owned_job(job_id, recruiter)
    get_job_service().delete(job["_id"])
    return MessageResponse(message="Job deleted")


@router.post("/{job_id}/publish")
def publish_job(job_id: str, recruiter: dict = Depends(get_current_recruiter)):
    """Activate the job, run matching and notify every matched student."""
    job = get_owned_job(job_id, recruiter)
    if job.get("status") == "active":
        raise HTTPException(status_code=400, detail="Job is already active")

    expires_at = ensure_aware(job.get("expires_at"))
    if expires_at and expires_at < utcnow():
        raise HTTPException(status_code=400, detail="Job expiry date has already passed")

    job_service = get_job_service()
    job = job_service.update_fields(job["_id"], {"status": "active", "posted_at": utcnow()})

    try:
        summary = get_matching_service().match_students_to_job(job["_id"])
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")

    job = job_service.get_by_id(job["_id"])
    notified = notify_job_matches(job, [m["student_id"] for m in as_list(job.get("matched_students"))])
    logger.info(f"Published job '{job['title']}', notified {notified} students")

    return {
        "message": "Job published",
        "job": serialize_doc({k: v for k, v in job.items() if k != "matched_students"}),
        "match_summary": summary,
        "notified": notified,
    }


@router.post("/{job_id}/match")
def match_job(job_id: str, recruiter: dict = Depends(get_current_recruiter)):
    job = get_owned_job(job_id, recruiter)
    try:
        return get_matching_service().match_students_to_job(job["_id"])
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")


@router.get("/{job_id}/matches")
async def get_matches(
    job_id: str,
    limit: int = Query(50, ge=1, le=50),
    min_score: int = Query(0, ge=0, le=100),
    recruiter: dict = Depends(get_current_recruiter)
):
    job = get_owned_job(job_id, recruiter)
    matches = get_matching_service().get_matched_students(job, limit=limit, min_score=min_score)
    return {
        "job_id": str(job["_id"]),
        "match_count": job.get("match_count") or 0,
        "last_matched_at": job.get("last_matched_at"),
        "matches": serialize_docs(matches),
    }


@router.get("/{job_id}/matches/{student_id}/explain")
async def explain_match(job_id: str, student_id: str, recruiter: dict = Depends(get_current_recruiter)):
    job = get_owned_job(job_id, recruiter)
    require_valid_id(student_id, "student id")
    explanation = get_matching_service().explain_match(job, student_id)
    if not explanation:
        raise HTTPException(status_code=404, detail="Student not found")
    return serialize_doc(explanation)


@router.get("/{job_id}/stats")
async def job_stats(job_id: str, recruiter: dict = Depends(get_current_recruiter)):
    job = get_owned_job(job_id, recruiter)
    scores = [m.get("match_score") or 0 for m in as_list(job.get("matched_students"))]

    return {
        "job_id": str(job["_id"]),
        "status": job.get("status"),
        "view_count": job.get("view_count") or 0,
        "match_count": len(scores),
        "average_match_score": int(round_half_up(sum(scores) / len(scores))) if scores else 0,
        "top_match_score": max(scores) if scores else 0,
        "score_distribution": {
            "excellent": sum(1 for s in scores if s >= 80),
            "good": sum(1 for s in scores if 60 <= s < 80),
            "potential": sum(1 for s in scores if s < 60),
        },
        "last_matched_at": job.get("last_matched_at"),
        "posted_at": job.get("posted_at"),
        "expires_at": job.get("expires_at"),
    }
