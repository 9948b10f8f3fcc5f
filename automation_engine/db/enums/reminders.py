"""Reminder enums."""

from enum import Enum


class ReminderEntityType(str, Enum):
    PRESENTATION = "presentation"
    MEETING = "meeting"
    ACTION_ITEM = "action_item"


class ReminderStatus(str, Enum):
    SCHEDULED = "scheduled"  # Waiting for scheduled_for
    CLAIMED = "claimed"  # A dispatch pass owns it
    SENT = "sent"  # Delivered; terminal
    CANCELLED = "cancelled"  # Target rescheduled or removed; terminal
