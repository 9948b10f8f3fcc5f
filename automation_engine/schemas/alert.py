"""Pydantic schemas for department alerts."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from automation_engine.db.enums import AlertSeverity, AlertStatus


class AlertCreate(BaseModel):
    department: str = Field(..., min_length=1, max_length=100)
    severity: AlertSeverity = AlertSeverity.MEDIUM
    title: str | None = Field(None, max_length=255)
    message: str = Field(..., min_length=1, max_length=5000)
    action_required: bool = False
    deadline: datetime | None = None
    related_entity_type: str | None = None
    related_entity_id: UUID | None = None


class AlertRead(BaseModel):
    id: UUID
    department: str
    severity: AlertSeverity
    title: str
    message: str
    action_required: bool
    deadline: datetime | None
    related_entity_type: str | None
    related_entity_id: UUID | None
    triggered_by: str
    status: AlertStatus
    acknowledged_by_user_id: UUID | None
    acknowledged_at: datetime | None
    resolved_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
