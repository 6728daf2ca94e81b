"""
Admin Routes

POST /admin/signup - Create admin account (signup code when configured)
POST /admin/login - Login and get token
GET /admin/profile - Get own profile
GET /admin/pending - Pending projects, certifications and events
POST /admin/verify - Verify or reject an item
GET /admin/stats - Dashboard counts
GET /admin/students - All students with readiness
POST /admin/market/refresh - Run the market data refresh now
GET /admin/market/status - Last market refresh result
"""

import hmac
import logging

from fastapi import APIRouter, HTTPException, Depends

from app.api.deps import require_valid_id, signup_account, login_account
from app.core.auth import get_current_admin
from app.core.config import get_settings
from app.jobs.market_data_refresher import get_market_refresher
from app.services.mongo_service import (
    get_admin_service, get_student_service, serialize_doc, find_embedded, VERIFIABLE_ARRAYS
)
from app.services.notification_service import notify_verification_result
from app.services.readiness_service import refresh_readiness
from app.utils.dates import utcnow, parse_datetime
from app.schemas.schemas import AdminSignup, LoginRequest, TokenResponse, VerifyRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def _item_title(item: dict) -> str:
    return item.get("title") or item.get("name") or "Untitled"


def _submitted_at(item: dict):
    """Sort key for the pending queue. Events carry only their date."""
    return parse_datetime(item.get("submitted_at") or item.get("date")) or utcnow()


@router.post("/signup", response_model=TokenResponse, status_code=201)
async def signup(data: AdminSignup):
    required_code = get_settings().admin_signup_code
    if required_code and not hmac.compare_digest(data.signup_code or "", required_code):
        raise HTTPException(status_code=403, detail="Invalid admin signup code")

    return signup_account(get_admin_service(), "admin", data.model_dump(exclude={"signup_code"}))


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    return login_account(get_admin_service(), "admin", request.email, request.password)


@router.get("/profile")
async def get_profile(admin: dict = Depends(get_current_admin)):
    return serialize_doc(admin)


@router.get("/pending")
async def pending_items(admin: dict = Depends(get_current_admin)):
    """Every pending item, flattened with its owner."""
    pending = []
    for student in get_student_service().find_with_pending_items():
        for item_type, array_name in VERIFIABLE_ARRAYS.items():
            for item in student.get(array_name) or []:
                if item.get("status") != "pending":
                    continue
                pending.append({
                    "student_id": student["_id"],
                    "student_name": student.get("name"),
                    "student_email": student.get("email"),
                    "item_type": item_type,
                    "item": item,
                })

    pending.sort(key=lambda p: _submitted_at(p["item"]))
    return {"count": len(pending), "items": serialize_doc(pending)}


@router.post("/verify")
async def verify_item(data: VerifyRequest, admin: dict = Depends(get_current_admin)):
    """
    Verify or reject a project, certification or event.
    Readiness is recomputed and the student is notified.
    """
    require_valid_id(data.student_id, "student id")
    require_valid_id(data.item_id, "item id")

    student_service = get_student_service()
    student = student_service.get_by_id(data.student_id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")

    array_name = VERIFIABLE_ARRAYS[data.item_type.value]
    item = find_embedded(student, array_name, data.item_id)
    if not item:
        raise HTTPException(status_code=404, detail=f"{data.item_type.value.capitalize()} not found")

    fields = {
        "status": data.status.value,
        "feedback": data.feedback,
        "verified_by": admin["_id"],
        "verified_at": utcnow(),
    }
    if data.item_type.value == "project":
        fields["verified"] = data.status.value == "verified"

    student_service.update_item(data.student_id, array_name, data.item_id, fields)
    readiness = refresh_readiness(data.student_id, student_service)
    notify_verification_result(
        data.student_id, data.item_type.value, _item_title(item), data.status.value, data.feedback
    )

    logger.info(
        f"Admin {admin['_id']} marked {data.item_type.value} {data.item_id} "
        f"of student {data.student_id} as {data.status.value}"
    )
    return {
        "message": f"{data.item_type.value.capitalize()} {data.status.value}",
        "readiness_score": readiness["total"] if readiness else None,
    }


@router.get("/stats")
async def dashboard_stats(admin: dict = Depends(get_current_admin)):
    student_service = get_student_service()
    return {
        "total_students": student_service.count(),
        "verified_projects": student_service.count_verified_projects(),
        "pending_items": student_service.count_pending_items(),
    }


@router.get("/students")
async def list_students(admin: dict = Depends(get_current_admin)):
    students = get_student_service().list_students(
        projection={"name": 1, "email": 1, "college": 1, "branch": 1, "cgpa": 1,
                    "readiness_score": 1, "streak_days": 1, "created_at": 1}
    )
    students.sort(key=lambda s: s.get("readiness_score") or 0, reverse=True)
    return serialize_doc(students)


@router.post("/market/refresh")
def refresh_market_data(admin: dict = Depends(get_current_admin)):
    """Runs the refresh synchronously; 409 while a run is in progress."""
    result = get_market_refresher().trigger_manual_refresh()
    if result is None:
        raise HTTPException(status_code=409, detail="Market data refresh already in progress")
    return {"message": "Market data refresh completed", "result": result}


@router.get("/market/status")
async def market_status(admin: dict = Depends(get_current_admin)):
    return get_market_refresher().get_last_run_status()
