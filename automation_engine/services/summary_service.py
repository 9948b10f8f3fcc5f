"""Weekly summary of engine activity, fanned out to the summary audience."""

import logging
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from automation_engine.core.config import settings
from automation_engine.db.enums import (
    ActionItemStatus,
    AIActionStatus,
    NotificationType,
    ReminderStatus,
)
from automation_engine.db.models import (
    ActionItem,
    AIAction,
    PipelineEntry,
    PipelineStageChange,
    Reminder,
    WeeklySummary,
)
from automation_engine.services import action_item_service, alert_service, notification_service

logger = logging.getLogger(__name__)


def week_start(now: datetime) -> date:
    """Monday of the week containing now (UTC)."""
    day = now.astimezone(timezone.utc).date()
    return day - timedelta(days=day.weekday())


def _window(week_of: date) -> tuple[datetime, datetime]:
    since = datetime.combine(week_of, time.min, tzinfo=timezone.utc)
    return since, since + timedelta(days=7)


def build_sections(db: Session, since: datetime, until: datetime) -> dict:
    """Activity counts for [since, until)."""
    created_by_status = action_item_service.count_by_status(db, since, until)
    created = sum(created_by_status.values())
    completed = db.query(ActionItem).filter(
        ActionItem.completed_at >= since,
        ActionItem.completed_at < until,
        ActionItem.status == ActionItemStatus.COMPLETED.value,
    ).count()
    overdue = db.query(ActionItem).filter(
        ActionItem.status == ActionItemStatus.OVERDUE.value
    ).count()

    reminders_sent = db.query(Reminder).filter(
        Reminder.status == ReminderStatus.SENT.value,
        Reminder.sent_at >= since,
        Reminder.sent_at < until,
    ).count()

    enrolled = db.query(PipelineEntry).filter(
        PipelineEntry.created_at >= since, PipelineEntry.created_at < until
    ).count()
    moved = db.query(PipelineStageChange).filter(
        PipelineStageChange.changed_at >= since,
        PipelineStageChange.changed_at < until,
        PipelineStageChange.from_stage.is_not(None),
    ).count()

    ai_rows = (
        db.query(AIAction.status, func.count(AIAction.id))
        .filter(AIAction.created_at >= since, AIAction.created_at < until)
        .group_by(AIAction.status)
        .all()
    )
    ai_counts = {status.value: 0 for status in AIActionStatus}
    ai_counts.update({row[0]: row[1] for row in ai_rows})

    return {
        "action_items": {
            "created": created,
            "completed": completed,
            "overdue": overdue,
            "created_by_status": created_by_status,
        },
        "reminders": {"sent": reminders_sent},
        "alerts": {"created": alert_service.count_created_between(db, since, until)},
        "pipeline": {"enrolled": enrolled, "stage_moves": moved},
        "ai_actions": ai_counts,
    }


def _render(sections: dict) -> str:
    items = sections["action_items"]
    pipeline = sections["pipeline"]
    return (
        f"Action items: {items['created']} created, {items['completed']} completed, "
        f"{items['overdue']} overdue. "
        f"Reminders sent: {sections['reminders']['sent']}. "
        f"Alerts raised: {sections['alerts']['created']}. "
        f"Pipeline: {pipeline['enrolled']} enrolled, {pipeline['stage_moves']} stage moves. "
        f"AI actions executed: {sections['ai_actions'].get(AIActionStatus.EXECUTED.value, 0)}."
    )


def get_summary(db: Session, week_of: date) -> WeeklySummary | None:
    return db.query(WeeklySummary).filter(WeeklySummary.week_of == week_of).first()


def _get_or_create(db: Session, week_of: date) -> WeeklySummary:
    summary = get_summary(db, week_of)
    if summary is not None:
        return summary
    summary = WeeklySummary(week_of=week_of)
    try:
        with db.begin_nested():
            db.add(summary)
    except IntegrityError:
        # Another scheduler created the week first
        summary = get_summary(db, week_of)
    return summary


def _claim_notification(db: Session, summary: WeeklySummary, now: datetime) -> bool:
    """Reserve the week's fan-out. False if an earlier run already sent it."""
    result = db.execute(
        update(WeeklySummary)
        .where(WeeklySummary.id == summary.id, WeeklySummary.notified_at.is_(None))
        .values(notified_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def generate_weekly_summary(db: Session, now: datetime | None = None) -> WeeklySummary:
    """
    Build the summary for the week containing now and notify SUMMARY_AUDIENCE.

    Regenerating the same week overwrites the stored sections but does not
    notify again. A fan-out that fails is released so the next run retries.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    week_of = week_start(now)
    since, until = _window(week_of)
    sections = build_sections(db, since, until)

    summary = _get_or_create(db, week_of)
    summary.sections = sections
    summary.generated_at = now
    db.flush()

    if _claim_notification(db, summary, now):
        sent = notification_service.fan_out_best_effort(
            db,
            target_type="weekly_summary",
            target_id=summary.id,
            type=NotificationType.WEEKLY_SUMMARY,
            title=f"Weekly summary: week of {week_of.isoformat()}",
            message=_render(sections),
            audience=settings.SUMMARY_AUDIENCE,
            entity_type="weekly_summary",
            entity_id=summary.id,
        )
        values = {"sent_count": sent} if sent is not None else {"notified_at": None}
        db.execute(
            update(WeeklySummary)
            .where(WeeklySummary.id == summary.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
    else:
        logger.info("Weekly summary for %s already sent; sections refreshed", week_of)

    db.commit()
    db.refresh(summary)
    logger.info("Weekly summary for %s sent to %d users", week_of, summary.sent_count)
    return summary
