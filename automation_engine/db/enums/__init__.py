"""Enum definitions for application constants."""

from automation_engine.db.enums.action_items import (
    ACTION_ITEM_TRANSITIONS,
    SWEEPABLE_ACTION_ITEM_STATUSES,
    TERMINAL_ACTION_ITEM_STATUSES,
    ActionItemHistoryAction,
    ActionItemPriority,
    ActionItemStatus,
    ActionItemType,
)
from automation_engine.db.enums.ai import AIActionStatus, AIActionType
from automation_engine.db.enums.alerts import (
    ALL_DEPARTMENTS,
    AlertSeverity,
    AlertStatus,
    Department,
)
from automation_engine.db.enums.audit import AuditEventType
from automation_engine.db.enums.auth import Role
from automation_engine.db.enums.notifications import AudienceKind, NotificationType
from automation_engine.db.enums.onboarding import OnboardingPacketStatus, TeacherRequestStatus
from automation_engine.db.enums.permissions import (
    ROLES_CAN_DECIDE_AI_ACTIONS,
    ROLES_CAN_MANAGE_PIPELINE,
    ROLES_CAN_PROPOSE_AI_ACTIONS,
    ROLES_CAN_VIEW_ALL_ALERTS,
    ROLES_PRIVILEGED,
    is_privileged,
)
from automation_engine.db.enums.pipelines import (
    DEFAULT_PIPELINE_STAGES,
    PIPELINE_ENTRY_TRANSITIONS,
    ApplicantType,
    PipelineEntryStatus,
    StageActionKind,
)
from automation_engine.db.enums.reminders import ReminderEntityType, ReminderStatus

__all__ = [
    "ACTION_ITEM_TRANSITIONS",
    "ALL_DEPARTMENTS",
    "AIActionStatus",
    "AIActionType",
    "ActionItemHistoryAction",
    "ActionItemPriority",
    "ActionItemStatus",
    "ActionItemType",
    "AlertSeverity",
    "AlertStatus",
    "ApplicantType",
    "AudienceKind",
    "AuditEventType",
    "DEFAULT_PIPELINE_STAGES",
    "Department",
    "NotificationType",
    "OnboardingPacketStatus",
    "PIPELINE_ENTRY_TRANSITIONS",
    "PipelineEntryStatus",
    "ROLES_CAN_DECIDE_AI_ACTIONS",
    "ROLES_CAN_MANAGE_PIPELINE",
    "ROLES_CAN_PROPOSE_AI_ACTIONS",
    "ROLES_CAN_VIEW_ALL_ALERTS",
    "ROLES_PRIVILEGED",
    "ReminderEntityType",
    "ReminderStatus",
    "Role",
    "SWEEPABLE_ACTION_ITEM_STATUSES",
    "StageActionKind",
    "TERMINAL_ACTION_ITEM_STATUSES",
    "TeacherRequestStatus",
    "is_privileged",
]
