"""Pydantic schemas for reminders."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from automation_engine.db.enums import ReminderEntityType, ReminderStatus


class ScheduleRequest(BaseModel):
    entity_type: ReminderEntityType
    entity_id: UUID


class ReminderRead(BaseModel):
    id: UUID
    entity_type: ReminderEntityType
    entity_id: UUID
    reminder_type: str
    scheduled_for: datetime
    status: ReminderStatus
    audience: str | None
    title: str
    priority: str
    attempts: int
    last_error: str | None
    sent_at: datetime | None

    model_config = {"from_attributes": True}


class CancelResponse(BaseModel):
    cancelled: int
