"""Onboarding automation enums."""

from enum import Enum


class OnboardingPacketStatus(str, Enum):
    GENERATED = "generated"  # Stored, welcome email not attempted yet
    SENT = "sent"
    DELIVERY_FAILED = "delivery_failed"  # Needs a manual follow-up


class TeacherRequestStatus(str, Enum):
    NEW = "new"
    SCHEDULED = "scheduled"
    CLOSED = "closed"
