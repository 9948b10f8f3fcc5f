"""Recruitment pipeline engine.

Stages are ordered per applicant type by stage_order. An entry moves by
"go to stage X" or "go to next stage"; entering a stage evaluates its
auto_actions policy (notification item first, then follow-up item).
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from automation_engine.core.config import settings
from automation_engine.core.errors import InvalidPayload, InvalidTransition, NotFound, UnknownStage
from automation_engine.db.enums import (
    DEFAULT_PIPELINE_STAGES,
    PIPELINE_ENTRY_TRANSITIONS,
    ActionItemPriority,
    ActionItemType,
    ApplicantType,
    NotificationType,
    PipelineEntryStatus,
    Role,
    StageActionKind,
)
from automation_engine.db.models import (
    ActionItem,
    PipelineEntry,
    PipelineStage,
    PipelineStageChange,
    StageActionFiring,
    User,
)
from automation_engine.services import (
    action_item_service,
    identity_service,
    notification_service,
    onboarding_service,
)

logger = logging.getLogger(__name__)

# Days until a new application's review item is due, per applicant type
REVIEW_DUE_DAYS: dict[str, int] = {
    "volunteer": 3,
    "intern": 3,
    "teacher": 2,
}
DEFAULT_REVIEW_DUE_DAYS = 3

# Statuses that close the application's review item
DECIDED_STATUSES = {
    PipelineEntryStatus.ACCEPTED,
    PipelineEntryStatus.REJECTED,
    PipelineEntryStatus.WITHDRAWN,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_auto_actions(raw: dict[str, Any] | None) -> dict[str, Any]:
    """Fill defaults and validate a stage's auto_actions policy."""
    raw = raw or {}
    followup_days = raw.get("followup_days", 0)
    if isinstance(followup_days, bool) or not isinstance(followup_days, int) or followup_days < 0:
        raise InvalidPayload("followup_days must be a non-negative integer")
    return {
        "send_notification": bool(raw.get("send_notification", False)),
        "notification_template_id": raw.get("notification_template_id"),
        "create_followup": bool(raw.get("create_followup", False)),
        "followup_days": followup_days,
    }


# =============================================================================
# Stage configuration
# =============================================================================

def list_stages(
    db: Session,
    applicant_type: str,
    include_inactive: bool = False,
) -> list[PipelineStage]:
    """Stages for an applicant type, ordered by stage_order."""
    query = db.query(PipelineStage).filter(PipelineStage.applicant_type == applicant_type)
    if not include_inactive:
        query = query.filter(PipelineStage.is_active.is_(True))
    return query.order_by(PipelineStage.stage_order, PipelineStage.stage_name).all()


def get_stage(db: Session, applicant_type: str, stage_name: str) -> PipelineStage | None:
    return db.query(PipelineStage).filter(
        PipelineStage.applicant_type == applicant_type,
        PipelineStage.stage_name == stage_name,
    ).first()


def get_active_stage(db: Session, applicant_type: str, stage_name: str) -> PipelineStage | None:
    stage = get_stage(db, applicant_type, stage_name)
    if stage is None or not stage.is_active:
        return None
    return stage


def get_initial_stage(db: Session, applicant_type: str) -> PipelineStage | None:
    """Lowest stage_order active stage."""
    return db.query(PipelineStage).filter(
        PipelineStage.applicant_type == applicant_type,
        PipelineStage.is_active.is_(True),
    ).order_by(PipelineStage.stage_order, PipelineStage.stage_name).first()


def get_next_stage(db: Session, applicant_type: str, stage_name: str) -> PipelineStage | None:
    """First active stage ordered after stage_name. None at the terminal stage."""
    current = get_stage(db, applicant_type, stage_name)
    if current is None:
        return None
    return db.query(PipelineStage).filter(
        PipelineStage.applicant_type == applicant_type,
        PipelineStage.is_active.is_(True),
        PipelineStage.stage_order > current.stage_order,
    ).order_by(PipelineStage.stage_order, PipelineStage.stage_name).first()


def upsert_stage(
    db: Session,
    applicant_type: str,
    stage_name: str,
    stage_order: int,
    auto_actions: dict[str, Any] | None = None,
    requirements: list[str] | None = None,
    is_active: bool = True,
) -> PipelineStage:
    """
    Create or update a stage.

    Deactivating a stage that still holds entries is refused, since every
    entry must sit in an active stage.
    """
    if not stage_name or not stage_name.strip():
        raise InvalidPayload("stage_name is required")
    policy = normalize_auto_actions(auto_actions)

    stage = get_stage(db, applicant_type, stage_name)
    if stage and stage.is_active and not is_active:
        occupied = db.query(PipelineEntry).filter(
            PipelineEntry.applicant_type == applicant_type,
            PipelineEntry.current_stage == stage_name,
        ).count()
        if occupied:
            raise InvalidTransition(
                f"Stage '{stage_name}' still has {occupied} entries; move them first"
            )

    if stage is None:
        stage = PipelineStage(applicant_type=applicant_type, stage_name=stage_name.strip())
        db.add(stage)
    stage.stage_order = stage_order
    stage.auto_actions = policy
    stage.requirements = list(requirements or [])
    stage.is_active = is_active

    db.commit()
    db.refresh(stage)
    return stage


def seed_default_stages(db: Session, applicant_type: str) -> list[PipelineStage]:
    """Create the default board for an applicant type. Existing stages are left alone."""
    created = []
    for stage_name, stage_order in DEFAULT_PIPELINE_STAGES:
        if get_stage(db, applicant_type, stage_name):
            continue
        stage = PipelineStage(
            applicant_type=applicant_type,
            stage_name=stage_name,
            stage_order=stage_order,
            auto_actions=normalize_auto_actions(None),
            requirements=[],
            is_active=True,
        )
        db.add(stage)
        created.append(stage)
    db.commit()
    return created


# =============================================================================
# Entries
# =============================================================================

def get_entry(db: Session, entry_id: UUID) -> PipelineEntry | None:
    return db.query(PipelineEntry).filter(PipelineEntry.id == entry_id).first()


def require_entry(db: Session, entry_id: UUID) -> PipelineEntry:
    entry = get_entry(db, entry_id)
    if not entry:
        raise NotFound(f"Pipeline entry {entry_id} not found")
    return entry


def list_entries(
    db: Session,
    applicant_type: str | None = None,
    stage_name: str | None = None,
    status: PipelineEntryStatus | None = None,
) -> list[PipelineEntry]:
    query = db.query(PipelineEntry)
    if applicant_type:
        query = query.filter(PipelineEntry.applicant_type == applicant_type)
    if stage_name:
        query = query.filter(PipelineEntry.current_stage == stage_name)
    if status:
        query = query.filter(PipelineEntry.status == status.value)
    return query.order_by(PipelineEntry.created_at).all()


def get_stage_changes(db: Session, entry_id: UUID) -> list[PipelineStageChange]:
    return (
        db.query(PipelineStageChange)
        .filter(PipelineStageChange.entry_id == entry_id)
        .order_by(PipelineStageChange.changed_at, PipelineStageChange.id)
        .all()
    )


def enroll(
    db: Session,
    applicant_id: UUID,
    applicant_type: str,
    priority: ActionItemPriority | str | None = None,
    notes: str | None = None,
    actor: User | None = None,
) -> PipelineEntry:
    """
    Put an applicant on the board at the initial stage and open one
    unassigned recruitment_review item for the reviewer role.

    Re-enrolling the same applicant returns the existing entry.

    Raises:
        UnknownStage: no active stage exists for applicant_type
    """
    existing = db.query(PipelineEntry).filter(
        PipelineEntry.applicant_id == applicant_id,
        PipelineEntry.applicant_type == applicant_type,
    ).first()
    if existing:
        return existing

    initial = get_initial_stage(db, applicant_type)
    if initial is None:
        raise UnknownStage(f"No active pipeline stages for applicant type '{applicant_type}'")

    priority_value = action_item_service.parse_priority(priority or ActionItemPriority.MEDIUM).value
    now = _now()
    entry = PipelineEntry(
        applicant_id=applicant_id,
        applicant_type=applicant_type,
        current_stage=initial.stage_name,
        status=PipelineEntryStatus.NEW.value,
        priority=priority_value,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    db.add(entry)
    db.flush()

    db.add(
        PipelineStageChange(
            entry_id=entry.id,
            from_stage=None,
            to_stage=initial.stage_name,
            changed_by_user_id=actor.id if actor else None,
            changed_at=now,
        )
    )

    due_days = REVIEW_DUE_DAYS.get(applicant_type, DEFAULT_REVIEW_DUE_DAYS)
    action_item_service.create_action_item(
        db,
        title=f"Review new {applicant_type} application",
        item_type=ActionItemType.RECRUITMENT_REVIEW,
        priority=ActionItemPriority.HIGH,
        due_date=now + timedelta(days=due_days),
        metadata={"applicant_id": str(applicant_id), "applicant_type": applicant_type},
        related_entity_type="pipeline_entry",
        related_entity_id=entry.id,
        audience=action_item_service.default_audience(),
        is_system_generated=True,
        commit=False,
    )
    notification_service.broadcast_to_role(
        db,
        role=Role(settings.REVIEWER_ROLE),
        type=NotificationType.PIPELINE_UPDATE,
        title=f"New {applicant_type} application",
        message=f"An applicant entered the pipeline at {initial.stage_name}.",
        action_url=f"/pipeline/entries/{entry.id}",
        entity_type="pipeline_entry",
        entity_id=entry.id,
    )

    db.commit()
    db.refresh(entry)
    logger.info("Enrolled %s applicant %s at stage %s", applicant_type, applicant_id, entry.current_stage)
    return entry


def _claim_firing(
    db: Session,
    entry: PipelineEntry,
    stage: PipelineStage,
    kind: StageActionKind,
) -> StageActionFiring | None:
    """
    Reserve the (entry, stage, kind) key. Returns None if it already fired.
    With dedupe disabled every call fires and nothing is recorded.
    """
    if not settings.PIPELINE_DEDUPE_AUTO_ACTIONS:
        return StageActionFiring(entry_id=entry.id, stage_name=stage.stage_name, action_kind=kind.value)

    already = db.query(StageActionFiring).filter(
        StageActionFiring.entry_id == entry.id,
        StageActionFiring.stage_name == stage.stage_name,
        StageActionFiring.action_kind == kind.value,
    ).first()
    if already:
        return None

    firing = StageActionFiring(entry_id=entry.id, stage_name=stage.stage_name, action_kind=kind.value)
    try:
        with db.begin_nested():
            db.add(firing)
    except IntegrityError:
        # A concurrent advance fired it first
        return None
    return firing


def _fire_auto_actions(
    db: Session,
    entry: PipelineEntry,
    stage: PipelineStage,
    actor: User,
    now: datetime,
) -> list[ActionItem]:
    """Evaluate a stage policy. Notification item always precedes the follow-up."""
    policy = normalize_auto_actions(stage.auto_actions)
    created: list[ActionItem] = []
    applicant_ref = {
        "entry_id": str(entry.id),
        "applicant_id": str(entry.applicant_id),
        "applicant_type": entry.applicant_type,
        "stage": stage.stage_name,
    }

    if policy["send_notification"]:
        firing = _claim_firing(db, entry, stage, StageActionKind.SEND_NOTIFICATION)
        if firing is not None:
            item = action_item_service.create_action_item(
                db,
                title=f"Send {stage.stage_name} notification to applicant",
                item_type=ActionItemType.NOTIFICATION,
                assignee_ids=[actor.id],
                assigned_by_user_id=actor.id,
                metadata={
                    **applicant_ref,
                    "template_id": policy["notification_template_id"],
                },
                related_entity_type="pipeline_entry",
                related_entity_id=entry.id,
                is_system_generated=True,
                commit=False,
            )
            firing.action_item_id = item.id
            created.append(item)

    if policy["create_followup"]:
        firing = _claim_firing(db, entry, stage, StageActionKind.CREATE_FOLLOWUP)
        if firing is not None:
            assignee_id = entry.assigned_to_user_id or actor.id
            item = action_item_service.create_action_item(
                db,
                title=f"Follow up with applicant ({stage.stage_name})",
                item_type=ActionItemType.FOLLOW_UP,
                assignee_ids=[assignee_id],
                assigned_by_user_id=actor.id,
                due_date=now + timedelta(days=policy["followup_days"]),
                metadata=applicant_ref,
                related_entity_type="pipeline_entry",
                related_entity_id=entry.id,
                is_system_generated=True,
                commit=False,
            )
            firing.action_item_id = item.id
            created.append(item)

    db.flush()
    return created


def advance(
    db: Session,
    entry_id: UUID,
    target_stage: str,
    actor: User,
    now: datetime | None = None,
) -> PipelineEntry:
    """
    Move an entry to target_stage and fire that stage's auto-actions.

    Raises:
        NotFound: entry missing
        UnknownStage: target is not an active stage of the entry's applicant type
            (entry left unchanged)
    """
    now = now or _now()
    entry = require_entry(db, entry_id)
    stage = get_active_stage(db, entry.applicant_type, target_stage)
    if stage is None:
        raise UnknownStage(
            f"'{target_stage}' is not an active stage for applicant type '{entry.applicant_type}'"
        )

    from_stage = entry.current_stage
    entry.current_stage = stage.stage_name
    entry.updated_at = now
    if entry.status == PipelineEntryStatus.NEW.value:
        initial = get_initial_stage(db, entry.applicant_type)
        if initial is None or initial.stage_name != stage.stage_name:
            entry.status = PipelineEntryStatus.IN_PROGRESS.value

    db.add(
        PipelineStageChange(
            entry_id=entry.id,
            from_stage=from_stage,
            to_stage=stage.stage_name,
            changed_by_user_id=actor.id,
            changed_at=now,
        )
    )
    db.flush()

    created = _fire_auto_actions(db, entry, stage, actor, now)

    db.commit()
    db.refresh(entry)
    logger.info(
        "Pipeline entry %s moved %s -> %s (%d auto-action items)",
        entry.id,
        from_stage,
        stage.stage_name,
        len(created),
    )
    return entry


def advance_to_next(
    db: Session,
    entry_id: UUID,
    actor: User,
    now: datetime | None = None,
) -> PipelineEntry:
    """Advance to the next stage by order. InvalidTransition at the terminal stage."""
    entry = require_entry(db, entry_id)
    next_stage = get_next_stage(db, entry.applicant_type, entry.current_stage)
    if next_stage is None:
        raise InvalidTransition(f"Entry is already at the final stage '{entry.current_stage}'")
    return advance(db, entry.id, next_stage.stage_name, actor, now=now)


def update_status(
    db: Session,
    entry_id: UUID,
    new_status: PipelineEntryStatus | str,
    actor: User,
) -> PipelineEntry:
    """
    Change application status through PIPELINE_ENTRY_TRANSITIONS.

    Accepting a volunteer who already has a portal account triggers
    onboarding (approval alerts and the welcome packet).
    """
    entry = require_entry(db, entry_id)
    try:
        target = PipelineEntryStatus(new_status)
    except ValueError:
        raise InvalidTransition(f"Unknown status '{new_status}'")

    current = PipelineEntryStatus(entry.status)
    if target not in PIPELINE_ENTRY_TRANSITIONS[current]:
        raise InvalidTransition(f"Cannot change status from {current.value} to {target.value}")

    entry.status = target.value
    entry.updated_at = _now()
    if target in DECIDED_STATUSES:
        action_item_service.on_application_status_changed(db, entry.id, target.value, actor)

    db.commit()
    db.refresh(entry)

    if (
        target == PipelineEntryStatus.ACCEPTED
        and entry.applicant_type == ApplicantType.VOLUNTEER.value
        and identity_service.get_user(db, entry.applicant_id) is not None
    ):
        onboarding_service.on_volunteer_approved(db, entry.applicant_id, actor)
        db.refresh(entry)
    return entry


def assign(
    db: Session,
    entry_id: UUID,
    assignee_id: UUID | None,
) -> PipelineEntry:
    """Set the entry's owner; follow-ups created afterwards go to them."""
    entry = require_entry(db, entry_id)
    if assignee_id is not None and not db.query(User).filter(User.id == assignee_id).first():
        raise NotFound(f"User {assignee_id} not found")
    entry.assigned_to_user_id = assignee_id
    entry.updated_at = _now()
    db.commit()
    db.refresh(entry)
    return entry
