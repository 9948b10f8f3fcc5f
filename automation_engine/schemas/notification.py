"""Pydantic schemas for in-app notifications."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class NotificationRead(BaseModel):
    """Notification response."""
    id: UUID
    type: str
    title: str
    message: str | None
    action_url: str | None
    entity_type: str | None
    entity_id: UUID | None
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    items: list[NotificationRead]
    unread_count: int


class UnreadCountResponse(BaseModel):
    """Unread count only (for polling)."""
    count: int
