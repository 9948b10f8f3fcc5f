"""Pydantic schemas for approval-gated AI actions."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from automation_engine.db.enums import AIActionStatus


class AIActionPropose(BaseModel):
    """payload["type"] selects the handler run on approval."""
    payload: dict[str, Any] = Field(..., description="Must include 'type'")


class AIActionDecision(BaseModel):
    approve: bool


class AIActionRead(BaseModel):
    id: UUID
    proposed_by_user_id: UUID | None
    action_type: str
    payload: dict[str, Any]
    status: AIActionStatus
    approved_by_user_id: UUID | None
    approved_at: datetime | None
    executed_at: datetime | None
    results: dict[str, Any] | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AIActionTypesResponse(BaseModel):
    action_types: list[str]
