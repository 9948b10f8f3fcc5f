"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from automation_engine.db.base import Base
from automation_engine.db.enums import OnboardingPacketStatus
from automation_engine.db.types import JSONType, utc_now


class OnboardingPacket(Base):
    """
    Welcome packet for an approved volunteer. At most one per volunteer.

    A failed welcome email leaves the packet in delivery_failed with a note
    instead of retrying automatically.
    """

    __tablename__ = "onboarding_packets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    volunteer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    includes: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    content: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=OnboardingPacketStatus.GENERATED.value, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
