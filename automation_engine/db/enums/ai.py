"""AI action enums."""

from enum import Enum


class AIActionStatus(str, Enum):
    """
    proposed -> approved -> executed
    proposed -> rejected
    approved -> rejected (dispatch failed)
    """

    PROPOSED = "proposed"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXECUTED = "executed"


class AIActionType(str, Enum):
    """Action types with a built-in handler."""

    CREATE_ACTION_ITEM = "create_action_item"
    SEND_NOTIFICATION = "send_notification"
    SEND_EMAIL = "send_email"
    ADVANCE_PIPELINE = "advance_pipeline"
    CREATE_ALERT = "create_alert"
    GENERATE_WEEKLY_SUMMARY = "generate_weekly_summary"
