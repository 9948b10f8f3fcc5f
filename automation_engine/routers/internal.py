"""
Internal endpoints for scheduled/cron operations.

Protected by "Authorization: Bearer <CRON_SECRET>", or a founder/admin
session for manual runs. Call from an external cron.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from automation_engine.core.deps import get_db, require_scheduler_access
from automation_engine.db.models import User
from automation_engine.jobs import periodic
from automation_engine.schemas.job import PeriodicJobResult

router = APIRouter(prefix="/internal/scheduled", tags=["internal"])


@router.post("/reminders", response_model=PeriodicJobResult)
def dispatch_reminders(
    caller: User | None = Depends(require_scheduler_access),
    db: Session = Depends(get_db),
):
    """Send every due reminder (claim-then-act; safe to overlap)."""
    return periodic.run_reminder_dispatch(db)


@router.post("/overdue-sweep", response_model=PeriodicJobResult)
def overdue_sweep(
    caller: User | None = Depends(require_scheduler_access),
    db: Session = Depends(get_db),
):
    """Mark past-due action items overdue."""
    return periodic.run_overdue_sweep(db)


@router.post("/weekly-summary", response_model=PeriodicJobResult)
def weekly_summary(
    caller: User | None = Depends(require_scheduler_access),
    db: Session = Depends(get_db),
):
    """Generate and send this week's summary."""
    return periodic.run_weekly_summary(db)
