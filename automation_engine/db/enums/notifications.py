"""Notification enums."""

from enum import Enum


class NotificationType(str, Enum):
    ACTION_ITEM_ASSIGNED = "action_item_assigned"
    ACTION_ITEM_DUE = "action_item_due"
    REMINDER = "reminder"
    ALERT = "alert"
    PIPELINE_UPDATE = "pipeline_update"
    AI_ACTION = "ai_action"
    WEEKLY_SUMMARY = "weekly_summary"
    GENERAL = "general"


class AudienceKind(str, Enum):
    """Logical recipient groups, resolved to users at send time."""

    ALL = "all"
    ROLE = "role"
    DEPARTMENT = "department"
    TEAM = "team"
