"""
Notification Service - in-app notifications and audience fan-out.

Fan-out helpers only flush; the calling operation owns the commit so that
notifications land in the same unit of work as the change that caused them.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from automation_engine.db.enums import AuditEventType, NotificationType, Role
from automation_engine.db.models import ActionItem, Notification, User
from automation_engine.services import audience_service, audit_service
from automation_engine.services.audience_service import Audience

logger = logging.getLogger(__name__)


# =============================================================================
# Fan-out
# =============================================================================


def deliverable_users(db: Session, user_ids: Iterable[UUID]) -> list[User]:
    """Existing, active users for the given ids, de-duplicated in input order."""
    ordered: list[UUID] = []
    for user_id in user_ids:
        if user_id not in ordered:
            ordered.append(user_id)
    if not ordered:
        return []
    users = {
        u.id: u
        for u in db.query(User).filter(User.id.in_(ordered), User.is_active.is_(True)).all()
    }
    return [users[uid] for uid in ordered if uid in users]


def fan_out(
    db: Session,
    *,
    type: NotificationType,
    title: str,
    message: str | None = None,
    audience: Audience | str | None = None,
    recipients: Iterable[UUID] | None = None,
    action_url: str | None = None,
    entity_type: str | None = None,
    entity_id: UUID | None = None,
    exclude_user_id: UUID | None = None,
) -> int:
    """
    Create one notification per recipient.

    Recipients are the resolved audience plus any explicit ids. Unknown or
    inactive users are skipped. Returns the number of notifications created.
    """
    user_ids: list[UUID] = []
    if audience is not None:
        user_ids.extend(audience_service.resolve(db, audience))
    if recipients is not None:
        user_ids.extend(recipients)

    created = 0
    for user in deliverable_users(db, user_ids):
        if exclude_user_id and user.id == exclude_user_id:
            continue
        db.add(
            Notification(
                user_id=user.id,
                type=type.value,
                title=title,
                message=message,
                action_url=action_url,
                entity_type=entity_type,
                entity_id=entity_id,
            )
        )
        created += 1
    db.flush()
    return created


def broadcast_to_role(
    db: Session,
    *,
    role: Role,
    type: NotificationType,
    title: str,
    message: str | None = None,
    action_url: str | None = None,
    entity_type: str | None = None,
    entity_id: UUID | None = None,
) -> Notification:
    """Single role-addressed notification, matched to readers by their current role."""
    notification = Notification(
        user_id=None,
        audience_role=role.value,
        type=type.value,
        title=title,
        message=message,
        action_url=action_url,
        entity_type=entity_type,
        entity_id=entity_id,
    )
    db.add(notification)
    db.flush()
    return notification


def fan_out_best_effort(
    db: Session,
    *,
    target_type: str,
    target_id: UUID,
    actor_user_id: UUID | None = None,
    **kwargs,
) -> int | None:
    """
    fan_out inside a savepoint. On failure the savepoint is rolled back and
    the failure is written to the audit log; returns None.
    """
    try:
        with db.begin_nested():
            return fan_out(db, **kwargs)
    except Exception as e:
        audit_service.log_side_effect_failure(
            db,
            AuditEventType.NOTIFICATION_FAILED,
            target_type=target_type,
            target_id=target_id,
            error=e,
            actor_user_id=actor_user_id,
        )
        return None


# =============================================================================
# Reader side
# =============================================================================


def _visible_to(user: User):
    return or_(
        Notification.user_id == user.id,
        and_(Notification.user_id.is_(None), Notification.audience_role == user.role),
    )


def list_for_user(
    db: Session,
    user: User,
    unread_only: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> list[Notification]:
    """Notifications addressed to the user or to the user's current role."""
    query = db.query(Notification).filter(_visible_to(user))
    if unread_only:
        query = query.filter(Notification.read_at.is_(None))
    return query.order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()


def get_unread_count(db: Session, user: User) -> int:
    return db.query(Notification).filter(
        _visible_to(user),
        Notification.read_at.is_(None),
    ).count()


def mark_read(db: Session, notification_id: UUID, user: User) -> Notification | None:
    """Mark one of the user's own notifications as read."""
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user.id,
    ).first()

    if notification and not notification.read_at:
        notification.read_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(notification)

    return notification


def mark_all_read(db: Session, user: User) -> int:
    """Mark all of the user's own notifications as read. Returns count updated."""
    count = db.query(Notification).filter(
        Notification.user_id == user.id,
        Notification.read_at.is_(None),
    ).update({"read_at": datetime.now(timezone.utc)}, synchronize_session=False)
    db.commit()
    return count


def delete_notification(db: Session, notification_id: UUID, user: User) -> bool:
    """Recipients may delete their own notifications."""
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user.id,
    ).first()
    if not notification:
        return False
    db.delete(notification)
    db.commit()
    return True


# =============================================================================
# Triggers
# =============================================================================


def notify_action_item_assigned(
    db: Session,
    item: ActionItem,
    assignee_ids: Iterable[UUID],
    actor_user_id: UUID | None,
) -> int | None:
    """Tell new assignees about an item. Skips the actor."""
    return fan_out_best_effort(
        db,
        target_type="action_item",
        target_id=item.id,
        actor_user_id=actor_user_id,
        type=NotificationType.ACTION_ITEM_ASSIGNED,
        title=f"New action item: {item.title}",
        message=item.description,
        recipients=list(assignee_ids),
        action_url=f"/action-items/{item.id}",
        entity_type="action_item",
        entity_id=item.id,
        exclude_user_id=actor_user_id,
    )
