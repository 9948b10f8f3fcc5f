"""Pydantic schemas for action items."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from automation_engine.db.enums import ActionItemPriority, ActionItemStatus, ActionItemType


class ActionItemCreate(BaseModel):
    """Request to create an action item."""
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)
    item_type: str = Field(ActionItemType.TASK, min_length=1, max_length=50)
    priority: ActionItemPriority = ActionItemPriority.MEDIUM
    assignee_ids: list[UUID] = Field(default_factory=list)
    audience: str | None = Field(None, description="Used when assignee_ids is empty")
    due_date: datetime | None = None
    metadata: dict[str, Any] | None = None
    related_entity_type: str | None = None
    related_entity_id: UUID | None = None


class ActionItemStatusUpdate(BaseModel):
    status: ActionItemStatus


class ActionItemBulkStatusUpdate(BaseModel):
    ids: list[UUID] = Field(..., min_length=1, max_length=200)
    status: ActionItemStatus


class ActionItemDelegate(BaseModel):
    assignee_ids: list[UUID] = Field(..., min_length=1)


class ActionItemRead(BaseModel):
    """Full action item response."""
    id: UUID
    title: str
    description: str | None
    item_type: str
    priority: ActionItemPriority
    status: ActionItemStatus
    assignee_ids: list[UUID]
    audience: str | None
    assigned_by_user_id: UUID | None
    due_date: datetime | None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="item_metadata")
    related_entity_type: str | None
    related_entity_id: UUID | None
    is_system_generated: bool
    completed_at: datetime | None
    completed_by_user_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BulkResult(BaseModel):
    processed: int
    failed: int
    errors: list[dict[str, str]] = Field(default_factory=list)


class DashboardStats(BaseModel):
    total: int
    pending: int
    in_progress: int
    completed: int
    overdue: int
    urgent: int


class CommentCreate(BaseModel):
    body: str = Field(..., min_length=1, max_length=5000)
    is_internal: bool = False


class CommentUpdate(BaseModel):
    body: str = Field(..., min_length=1, max_length=5000)


class CommentRead(BaseModel):
    id: UUID
    action_item_id: UUID
    author_user_id: UUID | None
    body: str
    is_internal: bool
    created_at: datetime
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class HistoryRead(BaseModel):
    id: UUID
    actor_user_id: UUID | None
    action: str
    old_value: str | None
    new_value: str | None
    details: dict[str, Any] | None
    created_at: datetime

    model_config = {"from_attributes": True}
