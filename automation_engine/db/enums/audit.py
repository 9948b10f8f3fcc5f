"""Audit event enums."""

from enum import Enum


class AuditEventType(str, Enum):
    AI_ACTION_APPROVED = "ai_action_approved"
    AI_ACTION_REJECTED = "ai_action_rejected"
    AI_ACTION_FAILED = "ai_action_failed"
    NOTIFICATION_FAILED = "notification_failed"
    REMINDER_FAILED = "reminder_failed"
    SCHEDULED_JOB_RUN = "scheduled_job_run"
    ONBOARDING_EMAIL_FAILED = "onboarding_email_failed"
