"""SQLAlchemy ORM models."""

from automation_engine.db.models.action_items import (
    ActionItem,
    ActionItemAssignee,
    ActionItemComment,
    ActionItemHistory,
)
from automation_engine.db.models.ai import AIAction
from automation_engine.db.models.alerts import Alert
from automation_engine.db.models.audit import AuditLog
from automation_engine.db.models.auth import Team, TeamMember, User
from automation_engine.db.models.notifications import Notification
from automation_engine.db.models.onboarding import OnboardingPacket
from automation_engine.db.models.pipelines import (
    PipelineEntry,
    PipelineStage,
    PipelineStageChange,
    StageActionFiring,
)
from automation_engine.db.models.reminders import Reminder
from automation_engine.db.models.scheduling import Presentation, TeacherRequest, TeamMeeting
from automation_engine.db.models.summaries import WeeklySummary

__all__ = [
    "AIAction",
    "ActionItem",
    "ActionItemAssignee",
    "ActionItemComment",
    "ActionItemHistory",
    "Alert",
    "AuditLog",
    "Notification",
    "OnboardingPacket",
    "PipelineEntry",
    "PipelineStage",
    "PipelineStageChange",
    "Presentation",
    "Reminder",
    "StageActionFiring",
    "TeacherRequest",
    "Team",
    "TeamMeeting",
    "TeamMember",
    "User",
    "WeeklySummary",
]
