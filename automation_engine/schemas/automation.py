"""Pydantic schemas for task generation and onboarding."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from automation_engine.db.enums import OnboardingPacketStatus


class InternTaskGenerate(BaseModel):
    supervisor_id: UUID | None = None
    coordinating_department: str | None = Field(None, max_length=100)


class OnboardingPacketRead(BaseModel):
    id: UUID
    volunteer_id: UUID
    includes: list[str]
    content: dict[str, Any]
    status: OnboardingPacketStatus
    notes: str | None
    generated_at: datetime
    sent_at: datetime | None

    model_config = {"from_attributes": True}
