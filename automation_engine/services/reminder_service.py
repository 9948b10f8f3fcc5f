"""Reminder scheduler: idempotent scheduling and claim-then-act dispatch.

schedule() computes (reminder_type, scheduled_for) pairs from a target
entity and inserts the ones not already present. dispatch() claims each
due reminder with a conditional UPDATE (scheduled -> claimed) committed
before delivery, so concurrent passes never deliver the same reminder.
Delivery failure puts the reminder back to scheduled for the next pass.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable
from uuid import UUID

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from automation_engine.core.config import settings
from automation_engine.core.errors import InvalidPayload, NotFound
from automation_engine.db.enums import (
    TERMINAL_ACTION_ITEM_STATUSES,
    ActionItemPriority,
    AuditEventType,
    NotificationType,
    ReminderEntityType,
    ReminderStatus,
)
from automation_engine.db.models import (
    ActionItem,
    Presentation,
    Reminder,
    TeamMeeting,
)
from automation_engine.services import audience_service, audit_service, notification_service
from automation_engine.services.audience_service import Audience
from automation_engine.services.email_sender import MailSender, get_mail_sender

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderPlan:
    """One reminder a policy wants to exist."""

    reminder_type: str
    scheduled_for: datetime
    title: str
    message: str
    priority: ActionItemPriority = ActionItemPriority.MEDIUM
    audience: str | None = None
    recipient_email: str | None = None


@dataclass
class DispatchResult:
    processed: int = 0  # claimed by this pass
    sent: int = 0
    failed: int = 0
    skipped: int = 0  # target gone or closed; reminder cancelled

    def as_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
        }


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _fmt(when: datetime) -> str:
    return when.strftime("%Y-%m-%d %H:%M UTC")


# =============================================================================
# Policies
# =============================================================================

def _presentation_plans(db: Session, entity_id: UUID) -> list[ReminderPlan]:
    presentation = db.query(Presentation).filter(Presentation.id == entity_id).first()
    if not presentation:
        raise NotFound(f"Presentation {entity_id} not found")

    at = presentation.scheduled_at
    plans: list[ReminderPlan] = []
    if presentation.team_id:
        team = str(Audience.team(presentation.team_id))
        school = presentation.school_name
        plans += [
            ReminderPlan(
                reminder_type="week_before",
                scheduled_for=at - timedelta(days=7),
                title="Presentation Reminder: 1 Week Until Presentation",
                message=(
                    f"Your presentation at {school} is scheduled for {_fmt(at)}. "
                    "Please review materials and confirm attendance."
                ),
                audience=team,
            ),
            ReminderPlan(
                reminder_type="day_before",
                scheduled_for=at - timedelta(hours=24),
                title="Presentation Reminder: Tomorrow",
                message=(
                    f"Your presentation at {school} is tomorrow ({_fmt(at)}). "
                    "Please confirm all preparations are complete."
                ),
                priority=ActionItemPriority.HIGH,
                audience=team,
            ),
            ReminderPlan(
                reminder_type="two_hours_before",
                scheduled_for=at - timedelta(hours=2),
                title="Presentation Reminder: Starting in 2 Hours",
                message=f"Your presentation at {school} starts at {_fmt(at)}.",
                priority=ActionItemPriority.URGENT,
                audience=team,
            ),
        ]
    if presentation.teacher_email:
        plans.append(
            ReminderPlan(
                reminder_type="teacher_week_before",
                scheduled_for=at - timedelta(days=7),
                title="Reminder: Volunteer Presentation in 1 Week",
                message=(
                    f"A volunteer presentation for your class is scheduled for {_fmt(at)}. "
                    "Reply to this email if anything has changed."
                ),
                recipient_email=presentation.teacher_email,
            )
        )
    return plans


def _meeting_plans(db: Session, entity_id: UUID) -> list[ReminderPlan]:
    meeting = db.query(TeamMeeting).filter(TeamMeeting.id == entity_id).first()
    if not meeting:
        raise NotFound(f"Meeting {entity_id} not found")
    if not meeting.team_id:
        return []

    at = meeting.scheduled_at
    team = str(Audience.team(meeting.team_id))
    location = meeting.location or "TBD"
    return [
        ReminderPlan(
            reminder_type="day_before",
            scheduled_for=at - timedelta(hours=24),
            title=f"Team Meeting Tomorrow: {meeting.title}",
            message=f"Your team meeting is scheduled for {_fmt(at)}. Location: {location}",
            audience=team,
        ),
        ReminderPlan(
            reminder_type="hour_before",
            scheduled_for=at - timedelta(hours=1),
            title=f"Team Meeting in 1 Hour: {meeting.title}",
            message=f"Your team meeting starts at {_fmt(at)}. Location: {location}",
            priority=ActionItemPriority.HIGH,
            audience=team,
        ),
    ]


def _action_item_plans(db: Session, entity_id: UUID) -> list[ReminderPlan]:
    """Deadline reminders. Recipients are the item's assignees at send time."""
    item = db.query(ActionItem).filter(ActionItem.id == entity_id).first()
    if not item:
        raise NotFound(f"Action item {entity_id} not found")
    if item.due_date is None or item.status in {s.value for s in TERMINAL_ACTION_ITEM_STATUSES}:
        return []

    due = item.due_date
    return [
        ReminderPlan(
            reminder_type="deadline_48h",
            scheduled_for=due - timedelta(hours=48),
            title=f"Deadline in 2 days: {item.title}",
            message=f"'{item.title}' is due {_fmt(due)}.",
            priority=ActionItemPriority.HIGH,
        ),
        ReminderPlan(
            reminder_type="deadline_24h",
            scheduled_for=due - timedelta(hours=24),
            title=f"Deadline tomorrow: {item.title}",
            message=f"'{item.title}' is due {_fmt(due)}.",
            priority=ActionItemPriority.URGENT,
        ),
    ]


REMINDER_POLICIES: dict[ReminderEntityType, Callable[[Session, UUID], list[ReminderPlan]]] = {
    ReminderEntityType.PRESENTATION: _presentation_plans,
    ReminderEntityType.MEETING: _meeting_plans,
    ReminderEntityType.ACTION_ITEM: _action_item_plans,
}


def _parse_entity_type(entity_type: ReminderEntityType | str) -> ReminderEntityType:
    try:
        return ReminderEntityType(entity_type)
    except ValueError:
        raise InvalidPayload(f"Reminders are not supported for '{entity_type}'")


# =============================================================================
# Scheduling
# =============================================================================

def _revive(db: Session, reminder: Reminder, plan: ReminderPlan) -> bool:
    """Flip a cancelled reminder back to scheduled. False if it was not cancelled."""
    result = db.execute(
        update(Reminder)
        .where(
            Reminder.id == reminder.id,
            Reminder.status == ReminderStatus.CANCELLED.value,
        )
        .values(
            status=ReminderStatus.SCHEDULED.value,
            audience=plan.audience,
            recipient_email=plan.recipient_email,
            title=plan.title,
            message=plan.message,
            priority=plan.priority.value,
            attempts=0,
            claimed_at=None,
            sent_at=None,
            last_error=None,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    db.refresh(reminder)
    return True


def schedule(
    db: Session,
    entity_type: ReminderEntityType | str,
    entity_id: UUID,
    now: datetime | None = None,
) -> list[Reminder]:
    """
    Insert the policy's reminders for an entity. Returns only rows that
    became live in this call.

    Live (entity, reminder_type, scheduled_for) tuples are skipped, as are
    offsets already in the past. A cancelled row for the same tuple is
    put back to scheduled with fresh delivery state.
    """
    now = now or _now()
    kind = _parse_entity_type(entity_type)
    plans = REMINDER_POLICIES[kind](db, entity_id)

    created: list[Reminder] = []
    for plan in plans:
        if plan.scheduled_for <= now:
            continue
        existing = db.query(Reminder).filter(
            Reminder.entity_type == kind.value,
            Reminder.entity_id == entity_id,
            Reminder.reminder_type == plan.reminder_type,
            Reminder.scheduled_for == plan.scheduled_for,
        ).first()
        if existing is not None:
            if _revive(db, existing, plan):
                created.append(existing)
            continue

        reminder = Reminder(
            entity_type=kind.value,
            entity_id=entity_id,
            reminder_type=plan.reminder_type,
            scheduled_for=plan.scheduled_for,
            status=ReminderStatus.SCHEDULED.value,
            audience=plan.audience,
            recipient_email=plan.recipient_email,
            title=plan.title,
            message=plan.message,
            priority=plan.priority.value,
        )
        try:
            with db.begin_nested():
                db.add(reminder)
        except IntegrityError:
            # Inserted concurrently by another scheduler
            continue
        created.append(reminder)

    db.commit()
    logger.info(
        "Scheduled %d reminders for %s %s", len(created), kind.value, entity_id
    )
    return created


def cancel_for_entity(
    db: Session,
    entity_type: ReminderEntityType | str,
    entity_id: UUID,
) -> int:
    """Cancel every not-yet-sent reminder for an entity. Returns count cancelled."""
    kind = _parse_entity_type(entity_type)
    result = db.execute(
        update(Reminder)
        .where(
            Reminder.entity_type == kind.value,
            Reminder.entity_id == entity_id,
            Reminder.status == ReminderStatus.SCHEDULED.value,
        )
        .values(status=ReminderStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def reschedule(
    db: Session,
    entity_type: ReminderEntityType | str,
    entity_id: UUID,
    now: datetime | None = None,
) -> list[Reminder]:
    """Target time changed: drop pending reminders and schedule from the new time."""
    cancel_for_entity(db, entity_type, entity_id)
    return schedule(db, entity_type, entity_id, now=now)


def list_for_entity(
    db: Session,
    entity_type: ReminderEntityType | str,
    entity_id: UUID,
) -> list[Reminder]:
    kind = _parse_entity_type(entity_type)
    return (
        db.query(Reminder)
        .filter(Reminder.entity_type == kind.value, Reminder.entity_id == entity_id)
        .order_by(Reminder.scheduled_for)
        .all()
    )


# =============================================================================
# Dispatch
# =============================================================================

def _claimable(now: datetime):
    stale_before = now - timedelta(minutes=settings.REMINDER_CLAIM_TIMEOUT_MINUTES)
    return or_(
        and_(
            Reminder.status == ReminderStatus.SCHEDULED.value,
            Reminder.scheduled_for <= now,
        ),
        and_(
            Reminder.status == ReminderStatus.CLAIMED.value,
            Reminder.claimed_at < stale_before,
        ),
    )


def claim_reminder(db: Session, reminder_id: UUID, now: datetime) -> bool:
    """
    Atomically take ownership of a due reminder (committed immediately).

    Returns False if another pass claimed or sent it first. Claims older
    than REMINDER_CLAIM_TIMEOUT_MINUTES are treated as abandoned.
    """
    result = db.execute(
        update(Reminder)
        .where(Reminder.id == reminder_id, _claimable(now))
        .values(
            status=ReminderStatus.CLAIMED.value,
            claimed_at=now,
            attempts=Reminder.attempts + 1,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def release_claim(db: Session, reminder_id: UUID, error: Exception) -> None:
    """Return a failed reminder to scheduled and record why."""
    db.execute(
        update(Reminder)
        .where(
            Reminder.id == reminder_id,
            Reminder.status == ReminderStatus.CLAIMED.value,
        )
        .values(
            status=ReminderStatus.SCHEDULED.value,
            claimed_at=None,
            last_error=f"{type(error).__name__}: {error}"[:1000],
        )
        .execution_options(synchronize_session=False)
    )
    audit_service.log_side_effect_failure(
        db,
        AuditEventType.REMINDER_FAILED,
        target_type="reminder",
        target_id=reminder_id,
        error=error,
    )
    db.commit()


def _target_is_open(db: Session, reminder: Reminder) -> bool:
    if reminder.entity_type == ReminderEntityType.ACTION_ITEM.value:
        item = db.query(ActionItem).filter(ActionItem.id == reminder.entity_id).first()
        return item is not None and item.status not in {
            s.value for s in TERMINAL_ACTION_ITEM_STATUSES
        }
    if reminder.entity_type == ReminderEntityType.PRESENTATION.value:
        presentation = db.query(Presentation).filter(
            Presentation.id == reminder.entity_id
        ).first()
        return presentation is not None and presentation.status != "cancelled"
    if reminder.entity_type == ReminderEntityType.MEETING.value:
        return db.query(TeamMeeting.id).filter(
            TeamMeeting.id == reminder.entity_id
        ).first() is not None
    return True


def _resolve_recipients(db: Session, reminder: Reminder) -> list[UUID]:
    """Recipients at send time: the stored audience, or the item's current assignees."""
    if reminder.entity_type == ReminderEntityType.ACTION_ITEM.value:
        item = db.query(ActionItem).filter(ActionItem.id == reminder.entity_id).first()
        if item is None:
            return []
        if item.assignee_ids:
            return item.assignee_ids
        return audience_service.resolve(db, item.audience) if item.audience else []
    if reminder.audience:
        return audience_service.resolve(db, reminder.audience)
    return []


def deliver_reminder(
    db: Session,
    reminder: Reminder,
    mail_sender: MailSender,
    now: datetime,
) -> None:
    """
    In-app notifications plus one email per addressable recipient, then
    mark sent. Notifications and the sent mark commit together; if any
    email fails nothing is committed and the exception propagates.
    """
    users = notification_service.deliverable_users(db, _resolve_recipients(db, reminder))
    notification_service.fan_out(
        db,
        type=NotificationType.REMINDER,
        title=reminder.title,
        message=reminder.message,
        recipients=[u.id for u in users],
        entity_type=reminder.entity_type,
        entity_id=reminder.entity_id,
    )

    addresses: list[str] = []
    for email in [u.email for u in users] + [reminder.recipient_email]:
        if email and email not in addresses:
            addresses.append(email)
    for email in addresses:
        mail_sender.send(
            email,
            reminder.title,
            reminder.message,
            idempotency_key=f"reminder/{reminder.id}/{email}",
        )

    reminder.status = ReminderStatus.SENT.value
    reminder.sent_at = now
    reminder.last_error = None
    db.commit()


def dispatch(
    db: Session,
    now: datetime | None = None,
    mail_sender: MailSender | None = None,
    batch_size: int | None = None,
) -> DispatchResult:
    """
    Send every due, unsent reminder at most once per successful delivery.

    Per-reminder failures are recorded on the row (last_error, attempts)
    and counted; they never abort the pass.
    """
    now = now or _now()
    mail_sender = mail_sender or get_mail_sender()
    batch_size = batch_size or settings.REMINDER_DISPATCH_BATCH_SIZE
    result = DispatchResult()

    candidate_ids = [
        row.id
        for row in db.query(Reminder.id)
        .filter(_claimable(now))
        .order_by(Reminder.scheduled_for)
        .limit(batch_size)
        .all()
    ]

    for reminder_id in candidate_ids:
        if not claim_reminder(db, reminder_id, now):
            continue
        result.processed += 1
        reminder = db.query(Reminder).filter(Reminder.id == reminder_id).one()

        if not _target_is_open(db, reminder):
            reminder.status = ReminderStatus.CANCELLED.value
            db.commit()
            result.skipped += 1
            continue

        try:
            deliver_reminder(db, reminder, mail_sender, now)
        except Exception as e:
            db.rollback()
            logger.exception("Reminder %s delivery failed", reminder_id)
            release_claim(db, reminder_id, e)
            result.failed += 1
            continue
        result.sent += 1

    if result.processed:
        logger.info("Reminder dispatch: %s", result.as_dict())
    return result
