"""Periodic passes, triggered by the internal router or the CLI.

Each job takes a session and returns {"processed": n, "failed": n} plus
any job-specific counters. One run is recorded in the audit log.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from sqlalchemy.orm import Session

from automation_engine.core.structured_logging import build_log_context
from automation_engine.db.enums import AuditEventType
from automation_engine.services import (
    action_item_service,
    audit_service,
    reminder_service,
    summary_service,
)
from automation_engine.services.email_sender import MailSender

logger = logging.getLogger(__name__)


def _record_run(db: Session, job: str, result: dict[str, Any]) -> None:
    audit_service.log_event(
        db,
        AuditEventType.SCHEDULED_JOB_RUN,
        target_type="job",
        details={"job": job, **result},
    )
    db.commit()
    logger.info("%s finished: %s", job, result, extra=build_log_context(job=job))


def run_reminder_dispatch(
    db: Session,
    now: datetime | None = None,
    mail_sender: MailSender | None = None,
) -> dict[str, int]:
    """Send every due reminder. A pass that cannot start is counted, not raised."""
    try:
        result = reminder_service.dispatch(db, now=now, mail_sender=mail_sender)
    except Exception:
        db.rollback()
        logger.exception("Reminder dispatch failed", extra=build_log_context(job="reminders"))
        summary = {"processed": 0, "failed": 1, "sent": 0, "skipped": 0}
    else:
        summary = {
            "processed": result.processed,
            "failed": result.failed,
            "sent": result.sent,
            "skipped": result.skipped,
        }
    _record_run(db, "reminders", summary)
    return summary


def run_overdue_sweep(db: Session, now: datetime | None = None) -> dict[str, int]:
    """Mark past-due open action items overdue."""
    try:
        result = action_item_service.sweep_overdue(db, now=now)
    except Exception:
        db.rollback()
        logger.exception("Overdue sweep failed", extra=build_log_context(job="overdue_sweep"))
        result = {"processed": 0, "failed": 1}
    _record_run(db, "overdue_sweep", result)
    return result


def run_weekly_summary(db: Session, now: datetime | None = None) -> dict[str, Any]:
    """Generate this week's summary. A failure is counted, not raised."""
    now = now or datetime.now(timezone.utc)
    try:
        summary = summary_service.generate_weekly_summary(db, now=now)
    except Exception:
        db.rollback()
        logger.exception("Weekly summary failed", extra=build_log_context(job="weekly_summary"))
        result: dict[str, Any] = {"processed": 0, "failed": 1}
    else:
        result = {
            "processed": 1,
            "failed": 0,
            "week_of": summary.week_of.isoformat(),
            "sent_count": summary.sent_count,
        }
    _record_run(db, "weekly_summary", result)
    return result


PeriodicJob = Callable[..., dict[str, Any]]

PERIODIC_JOBS: Mapping[str, PeriodicJob] = {
    "reminders": run_reminder_dispatch,
    "overdue-sweep": run_overdue_sweep,
    "weekly-summary": run_weekly_summary,
}
