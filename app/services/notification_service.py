"""
Notification helpers - build and store notifications for domain events.

Notifications are only persisted here; they are read through the
/api/notifications routes. Failures are logged and never break the
operation that triggered them.
"""

import logging
from typing import Any, Iterable

from app.services.mongo_service import NotificationService

logger = logging.getLogger(__name__)


def notify(
    recipient_id: Any,
    recipient_role: str,
    type: str,
    title: str,
    message: str,
    data: dict = None,
    notification_service: NotificationService = None
) -> bool:
    try:
        service = notification_service or NotificationService()
        service.create(recipient_id, recipient_role, type, title, message, data)
        return True
    except Exception as e:
        logger.error(f"Failed to store notification for {recipient_role} {recipient_id}: {e}")
        return False


def notify_verification_result(
    student_id: Any,
    item_type: str,
    item_title: str,
    status: str,
    feedback: str = None,
    notification_service: NotificationService = None
) -> bool:
    """Tell a student their project/certification/event was verified or rejected."""
    label = item_type.capitalize()
    if status == "verified":
        title = f"{label} verified"
        message = f"Your {item_type} '{item_title}' has been verified."
    else:
        title = f"{label} rejected"
        message = f"Your {item_type} '{item_title}' was rejected."
    if feedback:
        message = f"{message} Feedback: {feedback}"

    return notify(
        student_id, "student", "verification", title, message,
        {"item_type": item_type, "status": status},
        notification_service
    )


def notify_job_matches(
    job: dict,
    student_ids: Iterable[Any],
    notification_service: NotificationService = None
) -> int:
    """Tell matched students about a newly published job. Returns how many were stored."""
    service = notification_service or NotificationService()
    sent = 0
    for student_id in student_ids:
        if notify(
            student_id, "student", "job_match",
            "New job match",
            f"You have been matched to {job.get('title')} at {job.get('company')}.",
            {"job_id": str(job["_id"])},
            service
        ):
            sent += 1
    return sent
