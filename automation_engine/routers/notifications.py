"""
Notifications Router - /me/notifications endpoints.

Provides notification listing and read status.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from automation_engine.core.deps import get_current_user, get_db, require_csrf_header
from automation_engine.db.models import User
from automation_engine.schemas.notification import (
    NotificationListResponse,
    NotificationRead,
    UnreadCountResponse,
)
from automation_engine.services import notification_service

router = APIRouter()


@router.get("/notifications", response_model=NotificationListResponse)
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get user's notifications, including ones addressed to the user's role."""
    notifications = notification_service.list_for_user(
        db, user, unread_only=unread_only, limit=limit, offset=offset
    )
    return NotificationListResponse(
        items=[NotificationRead.model_validate(n) for n in notifications],
        unread_count=notification_service.get_unread_count(db, user),
    )


@router.get("/notifications/count", response_model=UnreadCountResponse)
def get_unread_count(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get unread notification count (for polling)."""
    return UnreadCountResponse(count=notification_service.get_unread_count(db, user))


@router.patch(
    "/notifications/{notification_id}/read",
    response_model=NotificationRead,
    dependencies=[Depends(require_csrf_header)],
)
def mark_notification_read(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark a notification as read."""
    notification = notification_service.mark_read(db, notification_id, user)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.post(
    "/notifications/read-all",
    dependencies=[Depends(require_csrf_header)],
)
def mark_all_read(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark all notifications as read."""
    return {"marked_read": notification_service.mark_all_read(db, user)}


@router.delete(
    "/notifications/{notification_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_notification(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not notification_service.delete_notification(db, notification_id, user):
        raise HTTPException(status_code=404, detail="Notification not found")
    return Response(status_code=204)
