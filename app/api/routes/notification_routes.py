"""
Notification Routes (any authenticated role)

GET /notifications - List own notifications, newest first
GET /notifications/unread-count - Unread count
PATCH /notifications/read-all - Mark all as read
PATCH /notifications/{notification_id}/read - Mark one as read
DELETE /notifications/{notification_id} - Delete one
"""

from fastapi import APIRouter, HTTPException, Depends, Query

from app.core.auth import get_current_user
from app.services.mongo_service import get_notification_service, serialize_docs
from app.schemas.schemas import MessageResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=100),
    user: dict = Depends(get_current_user)
):
    service = get_notification_service()
    return {
        "notifications": serialize_docs(service.list_for(user["_id"], unread_only=unread_only, limit=limit)),
        "unread_count": service.unread_count(user["_id"]),
    }


@router.get("/unread-count")
async def unread_count(user: dict = Depends(get_current_user)):
    return {"unread_count": get_notification_service().unread_count(user["_id"])}


@router.patch("/read-all")
async def mark_all_read(user: dict = Depends(get_current_user)):
    updated = get_notification_service().mark_all_read(user["_id"])
    return {"message": "All notifications marked as read", "updated": updated}


@router.patch("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(notification_id: str, user: dict = Depends(get_current_user)):
    if not get_notification_service().mark_read(notification_id, user["_id"]):
        raise HTTPException(status_code=404, detail="Notification not found")
    return MessageResponse(message="Notification marked as read")


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(notification_id: str, user: dict = Depends(get_current_user)):
    if not get_notification_service().delete(notification_id, user["_id"]):
        raise HTTPException(status_code=404, detail="Notification not found")
    return MessageResponse(message="Notification deleted")
