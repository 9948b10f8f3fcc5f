"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from automation_engine.db.base import Base
from automation_engine.db.enums import ActionItemPriority, ActionItemStatus
from automation_engine.db.types import JSONType, utc_now


class ActionItem(Base):
    """
    A unit of work a human must do.

    Assignment:
    - Explicit assignees (action_item_assignees rows), or
    - No assignees: broadcast to `audience`, resolved against live membership

    Permissions:
    - Assignee / assigner / audience member (unassigned items): transition, comment
    - Founder/Admin: all
    """

    __tablename__ = "action_items"
    __table_args__ = (
        Index("idx_action_items_status_due", "status", "due_date"),
        Index("idx_action_items_related", "related_entity_type", "related_entity_id"),
        Index("idx_action_items_created", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    item_type: Mapped[str] = mapped_column(String(50), nullable=False)  # free-form tag
    priority: Mapped[str] = mapped_column(
        String(20), default=ActionItemPriority.MEDIUM.value, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=ActionItemStatus.PENDING.value, nullable=False
    )
    audience: Mapped[str | None] = mapped_column(
        String(120), nullable=True
    )  # 'role:founder', 'department:Operations', ...
    assigned_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    due_date: Mapped[datetime | None] = mapped_column(nullable=True)
    item_metadata: Mapped[dict] = mapped_column(
        "metadata", JSONType, default=dict, nullable=False
    )
    related_entity_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    related_entity_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    is_system_generated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    generation_key: Mapped[str | None] = mapped_column(
        String(200), unique=True, nullable=True
    )  # "<entity>:<id>:<task kind>" for generated tasks

    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, server_default=func.now(), nullable=False
    )

    assignments: Mapped[list["ActionItemAssignee"]] = relationship(
        back_populates="action_item", cascade="all, delete-orphan", lazy="selectin"
    )
    comments: Mapped[list["ActionItemComment"]] = relationship(
        back_populates="action_item",
        cascade="all, delete-orphan",
        order_by="ActionItemComment.created_at",
    )
    history: Mapped[list["ActionItemHistory"]] = relationship(
        back_populates="action_item",
        cascade="all, delete-orphan",
        order_by="ActionItemHistory.created_at",
    )

    @property
    def assignee_ids(self) -> list[uuid.UUID]:
        return [a.user_id for a in self.assignments]


class ActionItemAssignee(Base):
    __tablename__ = "action_item_assignees"
    __table_args__ = (
        UniqueConstraint("action_item_id", "user_id", name="uq_action_item_assignee"),
        Index("idx_action_item_assignees_user", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("action_items.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    action_item: Mapped[ActionItem] = relationship(back_populates="assignments")


class ActionItemComment(Base):
    """Comment thread entry. Editable only by its author or a privileged role."""

    __tablename__ = "action_item_comments"
    __table_args__ = (Index("idx_action_item_comments_item", "action_item_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("action_items.id", ondelete="CASCADE"), nullable=False
    )
    author_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)  # set on edit

    action_item: Mapped[ActionItem] = relationship(back_populates="comments")


class ActionItemHistory(Base):
    """
    Append-only audit trail for an action item.

    Never updated or deleted. One row per mutating operation.
    """

    __tablename__ = "action_item_history"
    __table_args__ = (Index("idx_action_item_history_item", "action_item_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("action_items.id", ondelete="CASCADE"), nullable=False
    )
    actor_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )  # None for system
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # ActionItemHistoryAction
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=utc_now, server_default=func.now(), nullable=False
    )

    action_item: Mapped[ActionItem] = relationship(back_populates="history")
