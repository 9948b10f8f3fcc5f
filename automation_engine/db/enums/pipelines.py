"""Recruitment pipeline enums."""

from enum import Enum


class ApplicantType(str, Enum):
    VOLUNTEER = "volunteer"
    INTERN = "intern"
    TEACHER = "teacher"


class PipelineEntryStatus(str, Enum):
    """Applicant status, independent of the board column (stage)."""

    NEW = "new"  # Just enrolled
    IN_PROGRESS = "in_progress"  # Moved past the first stage or picked up
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ONBOARDED = "onboarded"
    WITHDRAWN = "withdrawn"


PIPELINE_ENTRY_TRANSITIONS: dict[PipelineEntryStatus, frozenset[PipelineEntryStatus]] = {
    PipelineEntryStatus.NEW: frozenset({
        PipelineEntryStatus.IN_PROGRESS,
        PipelineEntryStatus.REJECTED,
        PipelineEntryStatus.WITHDRAWN,
    }),
    PipelineEntryStatus.IN_PROGRESS: frozenset({
        PipelineEntryStatus.ACCEPTED,
        PipelineEntryStatus.REJECTED,
        PipelineEntryStatus.WITHDRAWN,
    }),
    PipelineEntryStatus.ACCEPTED: frozenset({
        PipelineEntryStatus.ONBOARDED,
        PipelineEntryStatus.WITHDRAWN,
    }),
    PipelineEntryStatus.REJECTED: frozenset(),
    PipelineEntryStatus.ONBOARDED: frozenset(),
    PipelineEntryStatus.WITHDRAWN: frozenset(),
}


class StageActionKind(str, Enum):
    """Auto-action kinds a stage can fire on entry, in evaluation order."""

    SEND_NOTIFICATION = "send_notification"
    CREATE_FOLLOWUP = "create_followup"


# Default board for new applicant types: (stage_name, stage_order)
DEFAULT_PIPELINE_STAGES: tuple[tuple[str, int], ...] = (
    ("New", 1),
    ("Screening", 2),
    ("Interview", 3),
    ("Accepted", 4),
    ("Onboarded", 5),
)
