"""Task generation - turns presentations, teacher requests and intern work into action items.

Each source entity yields a fixed set of task kinds. A generated item carries
generation_key "<entity>:<id>:<kind>", so running a generator twice (or
from two schedulers) creates each task at most once. Coordination tasks
raise a cross-department alert when they are first created.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from automation_engine.core.errors import InvalidPayload, NotFound
from automation_engine.db.enums import (
    ActionItemPriority,
    ActionItemType,
    AlertSeverity,
    Department,
)
from automation_engine.db.models import ActionItem, Presentation, TeacherRequest, User
from automation_engine.services import action_item_service, alert_service
from automation_engine.services.audience_service import Audience

logger = logging.getLogger(__name__)

# Another presentation for the same team this close is a conflict
CONFLICT_WINDOW = timedelta(hours=3)


@dataclass(frozen=True)
class TaskPlan:
    """One task a generator wants to exist."""

    kind: str
    title: str
    description: str
    item_type: str
    due_date: datetime | None
    priority: ActionItemPriority = ActionItemPriority.MEDIUM
    assignee_ids: tuple[UUID, ...] = ()
    audience: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    coordinating_department: str | None = None


def generation_key(entity_type: str, entity_id: UUID, kind: str) -> str:
    return f"{entity_type}:{entity_id}:{kind}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_department(department: str) -> str:
    try:
        return Department(department).value
    except ValueError:
        raise InvalidPayload(f"Unknown department '{department}'")


def _materialize(
    db: Session,
    entity_type: str,
    entity_id: UUID,
    plans: list[TaskPlan],
    actor: User | None,
) -> list[ActionItem]:
    """Create the plans not generated yet, then alert for new coordination tasks."""
    created: list[tuple[ActionItem, TaskPlan]] = []
    for plan in plans:
        key = generation_key(entity_type, entity_id, plan.kind)
        if db.query(ActionItem.id).filter(ActionItem.generation_key == key).first():
            continue
        try:
            with db.begin_nested():
                item = action_item_service.create_action_item(
                    db,
                    title=plan.title,
                    description=plan.description,
                    item_type=plan.item_type,
                    priority=plan.priority,
                    assignee_ids=list(plan.assignee_ids),
                    due_date=plan.due_date,
                    metadata={"task_kind": plan.kind, **plan.metadata},
                    related_entity_type=entity_type,
                    related_entity_id=entity_id,
                    audience=plan.audience,
                    assigned_by_user_id=actor.id if actor else None,
                    is_system_generated=True,
                    generation_key=key,
                    commit=False,
                )
        except IntegrityError:
            # Generated concurrently
            continue
        created.append((item, plan))
    db.commit()

    for item, plan in created:
        if plan.coordinating_department:
            alert_service.create_alert(
                db,
                department=plan.coordinating_department,
                severity=(
                    AlertSeverity.HIGH
                    if plan.priority == ActionItemPriority.HIGH
                    else AlertSeverity.MEDIUM
                ),
                title=f"Coordination required: {item.title}",
                message=plan.description,
                triggered_by="task_generation",
                action_required=True,
                deadline=item.due_date,
                related_entity_type=entity_type,
                related_entity_id=entity_id,
            )

    logger.info("Generated %d tasks for %s %s", len(created), entity_type, entity_id)
    return [item for item, _ in created]


# =============================================================================
# Presentations
# =============================================================================

def _presentation_owner(presentation: Presentation) -> dict[str, Any]:
    """Captain if set, else the team audience, else the reviewer role."""
    if presentation.captain_user_id:
        return {"assignee_ids": (presentation.captain_user_id,)}
    if presentation.team_id:
        return {"audience": str(Audience.team(presentation.team_id))}
    return {}


def presentation_plans(presentation: Presentation) -> list[TaskPlan]:
    at = presentation.scheduled_at
    school = presentation.school_name
    owner = _presentation_owner(presentation)
    context = {"school_name": school, "presentation_at": at.isoformat()}
    return [
        TaskPlan(
            kind="checklist",
            title=f"Complete pre-presentation checklist for {school}",
            description=(
                "Confirm materials are ready, the team is briefed, equipment is "
                "tested and a backup plan exists."
            ),
            item_type=ActionItemType.CHECKLIST,
            priority=ActionItemPriority.HIGH,
            due_date=at - timedelta(days=7),
            metadata={**context, "topic": presentation.topic},
            **owner,
        ),
        TaskPlan(
            kind="follow_up_email",
            title=f"Send follow-up email to {school}",
            description="Thank the teacher, ask for feedback and offer follow-up resources.",
            item_type=ActionItemType.FOLLOW_UP,
            due_date=at + timedelta(days=1),
            metadata={**context, "contact_email": presentation.teacher_email},
            **owner,
        ),
        TaskPlan(
            kind="impact_assessment",
            title=f"Complete impact assessment for {school}",
            description="Gather teacher, student and volunteer feedback and record outcomes.",
            item_type=ActionItemType.IMPACT_ASSESSMENT,
            due_date=at + timedelta(days=7),
            metadata=context,
            **owner,
        ),
    ]


def find_scheduling_conflicts(db: Session, presentation: Presentation) -> list[Presentation]:
    """Other live presentations for the same team within CONFLICT_WINDOW."""
    if not presentation.team_id:
        return []
    return (
        db.query(Presentation)
        .filter(
            Presentation.id != presentation.id,
            Presentation.team_id == presentation.team_id,
            Presentation.status != "cancelled",
            Presentation.scheduled_at > presentation.scheduled_at - CONFLICT_WINDOW,
            Presentation.scheduled_at < presentation.scheduled_at + CONFLICT_WINDOW,
        )
        .order_by(Presentation.scheduled_at)
        .all()
    )


def generate_for_presentation(
    db: Session,
    presentation_id: UUID,
    actor: User | None = None,
) -> list[ActionItem]:
    """
    Checklist at T-7d, follow-up email at T+1d, impact assessment at T+7d.

    The first generation also checks the team's calendar and raises an
    urgent Operations alert on a clash. Returns only newly created items.

    Raises:
        NotFound, InvalidPayload (cancelled presentation)
    """
    presentation = db.query(Presentation).filter(Presentation.id == presentation_id).first()
    if not presentation:
        raise NotFound(f"Presentation {presentation_id} not found")
    if presentation.status == "cancelled":
        raise InvalidPayload("Cannot generate tasks for a cancelled presentation")

    created = _materialize(
        db, "presentation", presentation.id, presentation_plans(presentation), actor
    )

    if created:
        conflicts = find_scheduling_conflicts(db, presentation)
        if conflicts:
            details = ", ".join(
                f"{c.school_name} at {c.scheduled_at.isoformat()}" for c in conflicts
            )
            alert_service.alert_scheduling_conflict(
                db,
                presentation.id,
                f"Team already booked near {presentation.scheduled_at.isoformat()}: {details}",
                triggered_by="task_generation",
            )
    return created


# =============================================================================
# Teacher requests
# =============================================================================

def teacher_request_plans(request: TeacherRequest, now: datetime) -> list[TaskPlan]:
    school = request.school_name
    outreach = str(Audience.department(Department.OUTREACH.value))
    operations = str(Audience.department(Department.OPERATIONS.value))
    plans = [
        TaskPlan(
            kind="outreach",
            title=f"Contact {school} for presentation scheduling",
            description=(
                f"Reach out to {request.contact_name} at {request.contact_email} about "
                f"presentation options for {school} and their requested dates."
            ),
            item_type=ActionItemType.COORDINATION,
            priority=ActionItemPriority.HIGH,
            due_date=now + timedelta(days=2),
            audience=outreach,
            metadata={
                "school_name": school,
                "contact_name": request.contact_name,
                "contact_email": request.contact_email,
                "preferred_dates": list(request.preferred_dates or []),
                "grade_level": request.grade_level,
                "student_count": request.student_count,
            },
            coordinating_department=Department.OUTREACH.value,
        ),
        TaskPlan(
            kind="curriculum_review",
            title=f"Review curriculum alignment for {school}",
            description=(
                f"Check the presentation content against {request.grade_level or 'the class'} "
                "standards and the school's needs."
            ),
            item_type=ActionItemType.REVIEW,
            due_date=now + timedelta(days=3),
            audience=outreach,
            metadata={
                "grade_level": request.grade_level,
                "subject": request.subject,
                "special_requirements": request.special_requirements,
            },
        ),
        TaskPlan(
            kind="team_assignment",
            title=f"Assign presentation team for {school}",
            description="Pick a volunteer team by availability and experience.",
            item_type=ActionItemType.COORDINATION,
            due_date=now + timedelta(days=5),
            audience=operations,
            metadata={"student_count": request.student_count, "grade_level": request.grade_level},
            coordinating_department=Department.OPERATIONS.value,
        ),
    ]
    if request.special_requirements:
        plans.append(
            TaskPlan(
                kind="supplies",
                title=f"Prepare materials for {school}",
                description=request.special_requirements,
                item_type=ActionItemType.SUPPLY_REQUEST,
                due_date=now + timedelta(days=5),
                audience=operations,
                metadata={"school_name": school},
            )
        )
    return plans


def generate_for_teacher_request(
    db: Session,
    request_id: UUID,
    actor: User | None = None,
    now: datetime | None = None,
) -> list[ActionItem]:
    """Outreach, curriculum review and team assignment (plus supplies if requested)."""
    request = db.query(TeacherRequest).filter(TeacherRequest.id == request_id).first()
    if not request:
        raise NotFound(f"Teacher request {request_id} not found")
    plans = teacher_request_plans(request, now or _now())
    return _materialize(db, "teacher_request", request.id, plans, actor)


# =============================================================================
# Intern tasks
# =============================================================================

def generate_for_intern_task(
    db: Session,
    item_id: UUID,
    supervisor_id: UUID | None = None,
    coordinating_department: str | None = None,
    actor: User | None = None,
) -> list[ActionItem]:
    """
    Review task for an intern's action item, assigned to the supervisor (or
    the reviewer role), due with the item. With a coordinating department,
    also a coordination task for that department due three days after the
    item was created.
    """
    item = action_item_service.require_action_item(db, item_id)
    interns = [str(uid) for uid in item.assignee_ids]

    plans: list[TaskPlan] = []
    if coordinating_department:
        department = _parse_department(coordinating_department)
        plans.append(
            TaskPlan(
                kind="coordination",
                title=f"Coordinate {item.title} with {department}",
                description=(
                    f"This intern task needs the {department} department. "
                    "Schedule a meeting and agree on deliverables."
                ),
                item_type=ActionItemType.COORDINATION,
                priority=ActionItemPriority.HIGH,
                due_date=item.created_at + timedelta(days=3),
                audience=str(Audience.department(department)),
                metadata={"interns": interns, "department": department},
                coordinating_department=department,
            )
        )
    plans.append(
        TaskPlan(
            kind="review",
            title=f"Review {item.title} completion",
            description="Review the intern's work, give feedback and approve completion.",
            item_type=ActionItemType.REVIEW,
            due_date=item.due_date,
            assignee_ids=(supervisor_id,) if supervisor_id else (),
            metadata={"interns": interns},
        )
    )
    return _materialize(db, "action_item", item.id, plans, actor)
