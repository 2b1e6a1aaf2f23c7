"""Notification endpoints.

Every account reads and clears its own list; reviewers can inspect other
users' lists and superadmins can send system notifications.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..models import (
    MarkReadResponse,
    NotificationResponse,
    SendNotificationRequest,
    SendNotificationResponse,
    UserNotificationView,
)
from ..notifications.fanout import NotificationService, get_notification_service
from .auth import Authenticated, Reviewer, Superadmin

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    user: Authenticated,
    limit: int | None = Query(None, ge=1, le=500),
    service: NotificationService = Depends(get_notification_service),
) -> list[NotificationResponse]:
    """Own notifications, newest first."""
    rows = await service.list_for_user(user.id, limit)
    return [NotificationResponse.model_validate(row) for row in rows]


@router.get("/unread-count")
async def unread_count(
    user: Authenticated,
    service: NotificationService = Depends(get_notification_service),
) -> dict[str, int]:
    return {"count": await service.unread_count(user.id)}


@router.put("/read-all")
async def mark_all_read(
    user: Authenticated,
    service: NotificationService = Depends(get_notification_service),
) -> dict:
    updated = await service.mark_all_read(user.id)
    return {"success": True, "updated": updated}


@router.put("/{notification_id}/read", response_model=MarkReadResponse)
async def mark_read(
    notification_id: UUID,
    user: Authenticated,
    service: NotificationService = Depends(get_notification_service),
) -> MarkReadResponse:
    """Mark one notification read. Repeating the call changes nothing."""
    changed = await service.mark_read(user.id, notification_id)
    return MarkReadResponse(
        changed=changed,
        message="Notification marked as read" if changed else "Notification already read",
    )


@router.delete("/clear")
async def clear_notifications(
    user: Authenticated,
    service: NotificationService = Depends(get_notification_service),
) -> dict:
    deleted = await service.clear_all(user.id)
    return {"success": True, "deleted": deleted}


@router.get("/admin/all", response_model=list[UserNotificationView])
async def all_notifications(
    reviewer: Reviewer,
    limit: int = Query(200, ge=1, le=1000),
    service: NotificationService = Depends(get_notification_service),
) -> list[UserNotificationView]:
    """Every user's notifications with the recipient attached."""
    return await service.all_for_admin(limit)


@router.get("/user/{user_id}", response_model=list[UserNotificationView])
async def user_notifications(
    user_id: UUID,
    reviewer: Reviewer,
    service: NotificationService = Depends(get_notification_service),
) -> list[UserNotificationView]:
    return await service.for_user(user_id)


@router.post("/send", response_model=SendNotificationResponse)
async def send_notification(
    request: SendNotificationRequest,
    superadmin: Superadmin,
    service: NotificationService = Depends(get_notification_service),
) -> SendNotificationResponse:
    """Send to one user (``userId``) or to a role target."""
    recipients = await service.send(request, sent_by=superadmin.id)
    return SendNotificationResponse(
        message=f"Notification sent to {recipients} recipient(s)",
        recipients=recipients,
    )
