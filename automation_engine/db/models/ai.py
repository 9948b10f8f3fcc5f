"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from automation_engine.db.base import Base
from automation_engine.db.enums import AIActionStatus
from automation_engine.db.types import JSONType, utc_now


class AIAction(Base):
    """
    Machine-proposed action held for human approval.

    Invariants:
    - executed_at is set iff status == executed
    - approved_by_user_id/approved_at are set iff status != proposed
    - executed rows are never modified again
    """

    __tablename__ = "ai_actions"
    __table_args__ = (
        Index("idx_ai_actions_status_created", "status", "created_at"),
        Index("idx_ai_actions_proposer", "proposed_by_user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    proposed_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)  # payload["type"]
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=AIActionStatus.PROPOSED.value, nullable=False
    )
    approved_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    executed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    results: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )
