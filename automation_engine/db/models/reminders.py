"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Index, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from automation_engine.db.base import Base
from automation_engine.db.enums import ActionItemPriority, ReminderStatus
from automation_engine.db.types import JSONType, utc_now


class Reminder(Base):
    """
    One scheduled reminder for a presentation, meeting, or action item.

    (entity_type, entity_id, reminder_type, scheduled_for) is unique, so a
    reminder is scheduled at most once; the scheduled -> claimed flip makes
    it dispatched at most once per successful delivery.
    """

    __tablename__ = "reminders"
    __table_args__ = (
        UniqueConstraint(
            "entity_type",
            "entity_id",
            "reminder_type",
            "scheduled_for",
            name="uq_reminder_schedule",
        ),
        Index("idx_reminders_status_due", "status", "scheduled_for"),
        Index("idx_reminders_entity", "entity_type", "entity_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)  # ReminderEntityType
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    reminder_type: Mapped[str] = mapped_column(String(50), nullable=False)  # e.g. 'day_before'
    scheduled_for: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ReminderStatus.SCHEDULED.value, nullable=False
    )

    # Recipients, resolved at send time
    audience: Mapped[str | None] = mapped_column(String(120), nullable=True)
    recipient_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(
        String(20), default=ActionItemPriority.MEDIUM.value, nullable=False
    )
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    # Dispatch bookkeeping
    claimed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )

    @property
    def is_sent(self) -> bool:
        return self.status == ReminderStatus.SENT.value
