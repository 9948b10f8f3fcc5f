"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from automation_engine.db.base import Base
from automation_engine.db.enums import ActionItemPriority, PipelineEntryStatus
from automation_engine.db.types import JSONType, utc_now


class PipelineStage(Base):
    """
    One column of an applicant board.

    auto_actions: {
        "send_notification": bool,
        "notification_template_id": str | None,
        "create_followup": bool,
        "followup_days": int,
    }
    """

    __tablename__ = "pipeline_stages"
    __table_args__ = (
        UniqueConstraint("applicant_type", "stage_name", name="uq_pipeline_stage_name"),
        Index("idx_pipeline_stages_type_order", "applicant_type", "stage_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    applicant_type: Mapped[str] = mapped_column(String(30), nullable=False)
    stage_name: Mapped[str] = mapped_column(String(100), nullable=False)
    stage_order: Mapped[int] = mapped_column(Integer, nullable=False)
    auto_actions: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    requirements: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )


class PipelineEntry(Base):
    """
    An applicant's position in the pipeline.

    current_stage always names an active stage of applicant_type; only the
    pipeline service writes it.
    """

    __tablename__ = "pipeline_entries"
    __table_args__ = (
        UniqueConstraint("applicant_id", "applicant_type", name="uq_pipeline_entry_applicant"),
        Index("idx_pipeline_entries_type_stage", "applicant_type", "current_stage"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    applicant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    applicant_type: Mapped[str] = mapped_column(String(30), nullable=False)
    current_stage: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=PipelineEntryStatus.NEW.value, nullable=False
    )
    priority: Mapped[str] = mapped_column(
        String(20), default=ActionItemPriority.MEDIUM.value, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    assigned_to_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )


class PipelineStageChange(Base):
    """Append-only stage move log."""

    __tablename__ = "pipeline_stage_changes"
    __table_args__ = (Index("idx_pipeline_stage_changes_entry", "entry_id", "changed_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    entry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("pipeline_entries.id", ondelete="CASCADE"), nullable=False
    )
    from_stage: Mapped[str | None] = mapped_column(String(100), nullable=True)
    to_stage: Mapped[str] = mapped_column(String(100), nullable=False)
    changed_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    changed_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )


class StageActionFiring(Base):
    """
    Idempotency key for stage auto-actions: (entry, stage, action kind).

    The unique constraint makes a second firing fail at insert time, even
    from a concurrent advance.
    """

    __tablename__ = "pipeline_stage_action_firings"
    __table_args__ = (
        UniqueConstraint("entry_id", "stage_name", "action_kind", name="uq_stage_action_firing"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    entry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("pipeline_entries.id", ondelete="CASCADE"), nullable=False
    )
    stage_name: Mapped[str] = mapped_column(String(100), nullable=False)
    action_kind: Mapped[str] = mapped_column(String(50), nullable=False)  # StageActionKind
    action_item_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("action_items.id", ondelete="SET NULL"), nullable=True
    )
    fired_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )
