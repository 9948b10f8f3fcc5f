"""Action item store - generic "a human must do something" records.

Every mutating operation appends to ActionItemHistory (never updated or
deleted). Status changes go through ACTION_ITEM_TRANSITIONS; anything else
is an InvalidTransition.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.orm import Session

from automation_engine.core.config import settings
from automation_engine.core.errors import Forbidden, InvalidPayload, InvalidTransition, NotFound
from automation_engine.db.enums import (
    ACTION_ITEM_TRANSITIONS,
    SWEEPABLE_ACTION_ITEM_STATUSES,
    TERMINAL_ACTION_ITEM_STATUSES,
    ActionItemHistoryAction,
    ActionItemPriority,
    ActionItemStatus,
    ActionItemType,
    is_privileged,
)
from automation_engine.db.models import (
    ActionItem,
    ActionItemAssignee,
    ActionItemComment,
    ActionItemHistory,
    User,
)
from automation_engine.services import audience_service, notification_service

logger = logging.getLogger(__name__)

COMMENT_SUMMARY_LENGTH = 100


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_priority(priority: ActionItemPriority | str) -> ActionItemPriority:
    try:
        return ActionItemPriority(priority)
    except ValueError:
        raise InvalidPayload(f"Invalid priority '{priority}'")


def _parse_status(status: ActionItemStatus | str) -> ActionItemStatus:
    try:
        return ActionItemStatus(status)
    except ValueError:
        raise InvalidTransition(f"Unknown status '{status}'")


def default_audience() -> str:
    """Audience for unassigned items: the reviewer role."""
    return f"role:{settings.REVIEWER_ROLE}"


def record_history(
    db: Session,
    item: ActionItem,
    action: ActionItemHistoryAction,
    actor_user_id: UUID | None,
    old_value: str | None = None,
    new_value: str | None = None,
    details: dict[str, Any] | None = None,
) -> ActionItemHistory:
    """Append a history entry (flush only)."""
    entry = ActionItemHistory(
        action_item_id=item.id,
        actor_user_id=actor_user_id,
        action=action.value,
        old_value=old_value,
        new_value=new_value,
        details=details,
    )
    db.add(entry)
    db.flush()
    return entry


# =============================================================================
# Lookups and permissions
# =============================================================================


def get_action_item(db: Session, item_id: UUID) -> ActionItem | None:
    return db.query(ActionItem).filter(ActionItem.id == item_id).first()


def require_action_item(db: Session, item_id: UUID) -> ActionItem:
    item = get_action_item(db, item_id)
    if not item:
        raise NotFound(f"Action item {item_id} not found")
    return item


def can_act_on(db: Session, item: ActionItem, user: User) -> bool:
    """
    Assignee, assigner, privileged role, or (for unassigned items) a
    current member of the item's audience.
    """
    if is_privileged(user.role):
        return True
    if item.assigned_by_user_id and item.assigned_by_user_id == user.id:
        return True
    assignee_ids = item.assignee_ids
    if assignee_ids:
        return user.id in assignee_ids
    return audience_service.includes(db, item.audience, user)


def _can_see_internal(item: ActionItem, user: User) -> bool:
    if is_privileged(user.role):
        return True
    return item.assigned_by_user_id is not None and item.assigned_by_user_id == user.id


# =============================================================================
# Create
# =============================================================================


def create_action_item(
    db: Session,
    *,
    title: str,
    item_type: str,
    priority: ActionItemPriority | str = ActionItemPriority.MEDIUM,
    assignee_ids: Iterable[UUID] | None = None,
    due_date: datetime | None = None,
    metadata: dict[str, Any] | None = None,
    description: str | None = None,
    related_entity_type: str | None = None,
    related_entity_id: UUID | None = None,
    audience: str | None = None,
    assigned_by_user_id: UUID | None = None,
    is_system_generated: bool = False,
    generation_key: str | None = None,
    notify: bool = True,
    commit: bool = True,
) -> ActionItem:
    """
    Create an action item in PENDING with one 'created' history entry.

    Without assignees the item is broadcast to `audience` (default: the
    reviewer role). Explicit assignees are notified best-effort; a failed
    notification is recorded as a 'notification_failed' history entry.

    Args:
        generation_key: Unique key for generated tasks; a duplicate raises
            IntegrityError at flush.
        commit: If False, flushes only. Caller owns the transaction.
    """
    if not title or not title.strip():
        raise InvalidPayload("Title is required")
    if not item_type:
        raise InvalidPayload("Type is required")

    unique_assignees: list[UUID] = []
    for user_id in assignee_ids or []:
        if user_id not in unique_assignees:
            unique_assignees.append(user_id)

    if audience is not None:
        audience = str(audience_service.Audience.parse(audience))
    elif not unique_assignees:
        audience = default_audience()

    item = ActionItem(
        title=title.strip(),
        description=description,
        item_type=item_type,
        priority=parse_priority(priority).value,
        status=ActionItemStatus.PENDING.value,
        audience=audience,
        assigned_by_user_id=assigned_by_user_id,
        due_date=due_date,
        item_metadata=dict(metadata or {}),
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        is_system_generated=is_system_generated,
        generation_key=generation_key,
    )
    item.assignments = [ActionItemAssignee(user_id=uid) for uid in unique_assignees]
    db.add(item)
    db.flush()

    record_history(
        db,
        item,
        ActionItemHistoryAction.CREATED,
        assigned_by_user_id,
        new_value=item.status,
        details={
            "item_type": item_type,
            "assignees": [str(uid) for uid in unique_assignees],
            "audience": audience,
        },
    )

    if notify and unique_assignees:
        created = notification_service.notify_action_item_assigned(
            db, item, unique_assignees, assigned_by_user_id
        )
        if created is None:
            record_history(
                db,
                item,
                ActionItemHistoryAction.NOTIFICATION_FAILED,
                None,
                details={"recipients": [str(uid) for uid in unique_assignees]},
            )

    if commit:
        db.commit()
        db.refresh(item)
    return item


# =============================================================================
# Status transitions
# =============================================================================


def transition_status(
    db: Session,
    item_id: UUID,
    new_status: ActionItemStatus | str,
    actor: User | None,
    now: datetime | None = None,
    commit: bool = True,
    authorize: bool = True,
) -> ActionItem:
    """
    Move an item to new_status.

    actor=None is the system (overdue sweep) and may only mark items
    OVERDUE. authorize=False skips the relationship check for
    engine-internal callers acting for a user. COMPLETED stamps
    completed_by/completed_at; every other target clears them.

    Raises:
        NotFound, Forbidden, InvalidTransition
    """
    now = now or _now()
    target = _parse_status(new_status)
    item = require_action_item(db, item_id)

    if actor is None and target != ActionItemStatus.OVERDUE:
        raise InvalidTransition(f"The system can only mark items overdue, not {target.value}")
    if authorize and actor is not None and not can_act_on(db, item, actor):
        raise Forbidden("Only assignees, the assigner, or founders can update this item")

    current = ActionItemStatus(item.status)
    if target not in ACTION_ITEM_TRANSITIONS[current]:
        raise InvalidTransition(f"Cannot change status from {current.value} to {target.value}")
    if target == ActionItemStatus.OVERDUE and (item.due_date is None or item.due_date >= now):
        raise InvalidTransition("Item is not past its due date")

    item.status = target.value
    if target == ActionItemStatus.COMPLETED:
        item.completed_at = now
        item.completed_by_user_id = actor.id
    else:
        item.completed_at = None
        item.completed_by_user_id = None
    item.updated_at = now

    record_history(
        db,
        item,
        ActionItemHistoryAction.STATUS_CHANGED,
        actor.id if actor else None,
        old_value=current.value,
        new_value=target.value,
    )

    if commit:
        db.commit()
        db.refresh(item)
    else:
        db.flush()
    return item


def bulk_transition(
    db: Session,
    item_ids: Iterable[UUID],
    new_status: ActionItemStatus | str,
    actor: User,
) -> dict[str, Any]:
    """Apply one transition to many items. Per-item failures don't abort the batch."""
    processed = 0
    failed = 0
    errors: list[dict[str, str]] = []
    for item_id in item_ids:
        try:
            transition_status(db, item_id, new_status, actor)
            processed += 1
        except (NotFound, Forbidden, InvalidTransition) as e:
            db.rollback()
            failed += 1
            errors.append({"id": str(item_id), "error": e.code, "detail": e.message})
    return {"processed": processed, "failed": failed, "errors": errors}


def sweep_overdue(db: Session, now: datetime | None = None) -> dict[str, int]:
    """
    Periodic pass: mark every pending/in_progress item past its due date as
    OVERDUE. Safe to run concurrently (rows are locked and skipped).
    """
    now = now or _now()
    candidates = (
        db.query(ActionItem.id)
        .filter(
            ActionItem.status.in_([s.value for s in SWEEPABLE_ACTION_ITEM_STATUSES]),
            ActionItem.due_date.isnot(None),
            ActionItem.due_date < now,
        )
        .order_by(ActionItem.due_date)
        .with_for_update(skip_locked=True)
        .all()
    )

    processed = 0
    failed = 0
    for row in candidates:
        try:
            transition_status(db, row.id, ActionItemStatus.OVERDUE, None, now=now)
            processed += 1
        except InvalidTransition:
            # Already moved by a concurrent sweep or a user
            db.rollback()
        except Exception:
            db.rollback()
            failed += 1
            logger.exception("Overdue sweep failed for action item %s", row.id)
    return {"processed": processed, "failed": failed}


# =============================================================================
# Assignment
# =============================================================================


def delegate(
    db: Session,
    item_id: UUID,
    assignee_ids: Iterable[UUID],
    actor: User,
) -> ActionItem:
    """Replace assignees. Founders/admins or the original assigner only."""
    item = require_action_item(db, item_id)
    if not (is_privileged(actor.role) or item.assigned_by_user_id == actor.id):
        raise Forbidden("Only the assigner or founders can delegate this item")
    if ActionItemStatus(item.status) in TERMINAL_ACTION_ITEM_STATUSES:
        raise InvalidTransition("Cannot delegate a closed item")

    new_ids: list[UUID] = []
    for user_id in assignee_ids:
        if user_id not in new_ids:
            new_ids.append(user_id)
    old_ids = item.assignee_ids

    item.assignments = [ActionItemAssignee(user_id=uid) for uid in new_ids]
    if not new_ids and not item.audience:
        item.audience = default_audience()
    item.updated_at = _now()
    db.flush()

    record_history(
        db,
        item,
        ActionItemHistoryAction.DELEGATED,
        actor.id,
        old_value=",".join(str(uid) for uid in old_ids) or None,
        new_value=",".join(str(uid) for uid in new_ids) or None,
    )

    added = [uid for uid in new_ids if uid not in old_ids]
    if added:
        notification_service.notify_action_item_assigned(db, item, added, actor.id)

    db.commit()
    db.refresh(item)
    return item


# =============================================================================
# Comments
# =============================================================================


def add_comment(
    db: Session,
    item_id: UUID,
    author: User,
    body: str,
    is_internal: bool = False,
) -> ActionItemComment:
    """Append a comment and a 'commented' history entry with a truncated summary."""
    item = require_action_item(db, item_id)
    if not can_act_on(db, item, author):
        raise Forbidden("Only assignees, the assigner, or founders can comment on this item")
    if not body or not body.strip():
        raise InvalidPayload("Comment body is required")

    comment = ActionItemComment(
        action_item_id=item.id,
        author_user_id=author.id,
        body=body,
        is_internal=is_internal,
    )
    db.add(comment)
    db.flush()

    record_history(
        db,
        item,
        ActionItemHistoryAction.COMMENTED,
        author.id,
        new_value=body[:COMMENT_SUMMARY_LENGTH],
        details={"comment_id": str(comment.id), "is_internal": is_internal},
    )

    db.commit()
    db.refresh(comment)
    return comment


def edit_comment(db: Session, comment_id: UUID, actor: User, body: str) -> ActionItemComment:
    """Author or privileged role only."""
    comment = db.query(ActionItemComment).filter(ActionItemComment.id == comment_id).first()
    if not comment:
        raise NotFound(f"Comment {comment_id} not found")
    if comment.author_user_id != actor.id and not is_privileged(actor.role):
        raise Forbidden("Only the author can edit this comment")
    if not body or not body.strip():
        raise InvalidPayload("Comment body is required")

    old_body = comment.body
    comment.body = body
    comment.updated_at = _now()
    record_history(
        db,
        comment.action_item,
        ActionItemHistoryAction.COMMENT_EDITED,
        actor.id,
        old_value=old_body[:COMMENT_SUMMARY_LENGTH],
        new_value=body[:COMMENT_SUMMARY_LENGTH],
        details={"comment_id": str(comment.id)},
    )
    db.commit()
    db.refresh(comment)
    return comment


def list_comments(db: Session, item_id: UUID, viewer: User) -> list[ActionItemComment]:
    """Internal comments are visible to founders/admins and the assigner only."""
    item = require_action_item(db, item_id)
    if not can_act_on(db, item, viewer):
        raise Forbidden("Not allowed to view this item")
    query = db.query(ActionItemComment).filter(ActionItemComment.action_item_id == item.id)
    if not _can_see_internal(item, viewer):
        query = query.filter(ActionItemComment.is_internal.is_(False))
    return query.order_by(ActionItemComment.created_at).all()


# =============================================================================
# Read paths
# =============================================================================


def get_history(db: Session, item_id: UUID) -> list[ActionItemHistory]:
    require_action_item(db, item_id)
    return (
        db.query(ActionItemHistory)
        .filter(ActionItemHistory.action_item_id == item_id)
        .order_by(ActionItemHistory.created_at, ActionItemHistory.id)
        .all()
    )


def list_by_entity(
    db: Session,
    related_entity_type: str,
    related_entity_id: UUID,
) -> list[ActionItem]:
    return (
        db.query(ActionItem)
        .filter(
            ActionItem.related_entity_type == related_entity_type,
            ActionItem.related_entity_id == related_entity_id,
        )
        .order_by(ActionItem.created_at)
        .all()
    )


def _assigned_to_filter(db: Session, user: User):
    keys = audience_service.audience_keys_for(db, user)
    explicit = select(ActionItemAssignee.action_item_id).where(
        ActionItemAssignee.user_id == user.id
    )
    has_assignees = exists().where(ActionItemAssignee.action_item_id == ActionItem.id)
    return or_(
        ActionItem.id.in_(explicit),
        and_(~has_assignees, ActionItem.audience.in_(keys)),
    )


def list_assigned_to(
    db: Session,
    user: User,
    status: ActionItemStatus | None = None,
    include_closed: bool = False,
) -> list[ActionItem]:
    """
    Items assigned to the user, plus unassigned items whose audience the
    user currently belongs to.
    """
    query = db.query(ActionItem).filter(_assigned_to_filter(db, user))
    if status:
        query = query.filter(ActionItem.status == status.value)
    elif not include_closed:
        query = query.filter(
            ActionItem.status.notin_([s.value for s in TERMINAL_ACTION_ITEM_STATUSES])
        )
    return query.order_by(
        ActionItem.due_date.is_(None), ActionItem.due_date, ActionItem.created_at
    ).all()


def list_overdue(db: Session, now: datetime | None = None) -> list[ActionItem]:
    """Non-terminal items whose due date has passed (marked overdue or not yet)."""
    now = now or _now()
    return (
        db.query(ActionItem)
        .filter(
            ActionItem.status.notin_([s.value for s in TERMINAL_ACTION_ITEM_STATUSES]),
            ActionItem.due_date.isnot(None),
            ActionItem.due_date < now,
        )
        .order_by(ActionItem.due_date)
        .all()
    )


def dashboard_stats(db: Session, user: User, now: datetime | None = None) -> dict[str, int]:
    """Counts over the items the user can see (all items for founders/admins)."""
    now = now or _now()
    query = db.query(ActionItem.status, ActionItem.priority, ActionItem.due_date)
    if not is_privileged(user.role):
        query = query.filter(_assigned_to_filter(db, user))

    stats = {
        "total": 0,
        "pending": 0,
        "in_progress": 0,
        "completed": 0,
        "overdue": 0,
        "urgent": 0,
    }
    terminal = {s.value for s in TERMINAL_ACTION_ITEM_STATUSES}
    for status, priority, due_date in query.all():
        stats["total"] += 1
        if status in stats and status != ActionItemStatus.OVERDUE.value:
            stats[status] += 1
        is_open = status not in terminal
        if status == ActionItemStatus.OVERDUE.value or (
            is_open and due_date is not None and due_date < now
        ):
            stats["overdue"] += 1
        if is_open and priority == ActionItemPriority.URGENT.value:
            stats["urgent"] += 1
    return stats


def count_by_status(db: Session, since: datetime, until: datetime) -> dict[str, int]:
    """Items created in [since, until) grouped by current status."""
    rows = (
        db.query(ActionItem.status, func.count(ActionItem.id))
        .filter(ActionItem.created_at >= since, ActionItem.created_at < until)
        .group_by(ActionItem.status)
        .all()
    )
    return {status: count for status, count in rows}


# =============================================================================
# Event helpers
# =============================================================================


def on_application_status_changed(
    db: Session,
    entry_id: UUID,
    new_status: str,
    actor: User,
) -> ActionItem | None:
    """
    Close the open recruitment review for a pipeline entry once the
    application is decided, leaving an internal note.
    """
    review = (
        db.query(ActionItem)
        .filter(
            ActionItem.related_entity_type == "pipeline_entry",
            ActionItem.related_entity_id == entry_id,
            ActionItem.item_type == ActionItemType.RECRUITMENT_REVIEW,
            ActionItem.status.notin_([s.value for s in TERMINAL_ACTION_ITEM_STATUSES]),
        )
        .first()
    )
    if not review:
        return None

    transition_status(
        db, review.id, ActionItemStatus.COMPLETED, actor, commit=False, authorize=False
    )
    body = f"Application status changed to {new_status}"
    db.add(
        ActionItemComment(
            action_item_id=review.id,
            author_user_id=actor.id,
            body=body,
            is_internal=True,
        )
    )
    record_history(
        db,
        review,
        ActionItemHistoryAction.COMMENTED,
        actor.id,
        new_value=body[:COMMENT_SUMMARY_LENGTH],
        details={"is_internal": True},
    )
    return review
