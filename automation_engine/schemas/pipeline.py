"""Pydantic schemas for the recruitment pipeline."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from automation_engine.db.enums import ActionItemPriority, ApplicantType, PipelineEntryStatus


class StageUpsert(BaseModel):
    """Create or update a stage (keyed by applicant_type + stage_name)."""
    stage_name: str = Field(..., min_length=1, max_length=100)
    stage_order: int = Field(..., ge=1)
    auto_actions: dict[str, Any] | None = Field(
        None,
        description="send_notification, notification_template_id, create_followup, followup_days",
    )
    requirements: list[str] = Field(default_factory=list)
    is_active: bool = True


class StageRead(BaseModel):
    id: UUID
    applicant_type: str
    stage_name: str
    stage_order: int
    auto_actions: dict[str, Any]
    requirements: list[Any]
    is_active: bool

    model_config = {"from_attributes": True}


class EnrollRequest(BaseModel):
    applicant_id: UUID
    applicant_type: ApplicantType
    priority: ActionItemPriority | None = None
    notes: str | None = Field(None, max_length=5000)


class AdvanceRequest(BaseModel):
    """Target stage; omit to move to the next stage by order."""
    stage: str | None = Field(None, min_length=1, max_length=100)


class EntryStatusUpdate(BaseModel):
    status: PipelineEntryStatus


class EntryAssign(BaseModel):
    assignee_id: UUID | None


class EntryRead(BaseModel):
    id: UUID
    applicant_id: UUID
    applicant_type: str
    current_stage: str
    status: PipelineEntryStatus
    priority: ActionItemPriority
    notes: str | None
    assigned_to_user_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StageChangeRead(BaseModel):
    from_stage: str | None
    to_stage: str
    changed_by_user_id: UUID | None
    changed_at: datetime

    model_config = {"from_attributes": True}
