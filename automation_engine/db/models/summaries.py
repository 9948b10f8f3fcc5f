"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Date, Integer, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from automation_engine.db.base import Base
from automation_engine.db.types import JSONType, utc_now


class WeeklySummary(Base):
    """
    Engine activity for one week (Monday start).

    Regenerating a week overwrites the sections. The audience is notified
    once per week: notified_at is claimed by the first run that fans out.
    """

    __tablename__ = "weekly_summaries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    week_of: Mapped[date] = mapped_column(Date, unique=True, nullable=False)
    sections: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    sent_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    generated_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )
    notified_at: Mapped[datetime | None] = mapped_column(nullable=True)
