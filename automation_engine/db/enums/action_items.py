"""Action item enums and the status transition table."""

from enum import Enum


class ActionItemPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ActionItemStatus(str, Enum):
    """Action item lifecycle. COMPLETED and CANCELLED are terminal."""

    PENDING = "pending"  # Created, nobody started
    IN_PROGRESS = "in_progress"  # Work started
    COMPLETED = "completed"  # Done; completed_by/completed_at stamped
    CANCELLED = "cancelled"  # Soft-deleted
    OVERDUE = "overdue"  # Due date passed before completion


class ActionItemType:
    """Well-known action item type tags. Type is free-form; these are the ones the engine emits."""

    TASK = "task"
    FOLLOW_UP = "follow_up"
    RECRUITMENT_REVIEW = "recruitment_review"
    NOTIFICATION = "notification"
    REVIEW = "review"
    APPROVAL = "approval"
    DEADLINE = "deadline"
    SUPPLY_REQUEST = "supply_request"
    SYSTEM_ALERT = "system_alert"
    CHECKLIST = "checklist"
    COORDINATION = "coordination"
    IMPACT_ASSESSMENT = "impact_assessment"


TERMINAL_ACTION_ITEM_STATUSES = frozenset({
    ActionItemStatus.COMPLETED,
    ActionItemStatus.CANCELLED,
})

# Statuses the overdue sweep moves to OVERDUE
SWEEPABLE_ACTION_ITEM_STATUSES = frozenset({
    ActionItemStatus.PENDING,
    ActionItemStatus.IN_PROGRESS,
})

ACTION_ITEM_TRANSITIONS: dict[ActionItemStatus, frozenset[ActionItemStatus]] = {
    ActionItemStatus.PENDING: frozenset({
        ActionItemStatus.IN_PROGRESS,
        ActionItemStatus.COMPLETED,
        ActionItemStatus.CANCELLED,
        ActionItemStatus.OVERDUE,
    }),
    ActionItemStatus.IN_PROGRESS: frozenset({
        ActionItemStatus.IN_PROGRESS,
        ActionItemStatus.COMPLETED,
        ActionItemStatus.CANCELLED,
        ActionItemStatus.OVERDUE,
    }),
    ActionItemStatus.OVERDUE: frozenset({
        ActionItemStatus.IN_PROGRESS,
        ActionItemStatus.COMPLETED,
        ActionItemStatus.CANCELLED,
    }),
    ActionItemStatus.COMPLETED: frozenset(),
    ActionItemStatus.CANCELLED: frozenset(),
}


class ActionItemHistoryAction(str, Enum):
    """History entry labels, one per mutating operation."""

    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    COMMENTED = "commented"
    COMMENT_EDITED = "comment_edited"
    DELEGATED = "delegated"
    NOTIFICATION_FAILED = "notification_failed"
