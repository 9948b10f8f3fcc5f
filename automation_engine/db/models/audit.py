"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from automation_engine.db.base import Base
from automation_engine.db.types import JSONType, utc_now


class AuditLog(Base):
    """
    Operator-facing audit log.

    Records AI action decisions and best-effort side effects that failed
    (notifications, reminder deliveries), so delivery gaps are visible.
    Never stores message bodies or secrets.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_event_created", "event_type", "created_at"),
        Index("idx_audit_target", "target_type", "target_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    actor_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )  # System events have no actor
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)  # AuditEventType
    target_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    target_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )
