"""Tests for the weekly summary, periodic job wrappers, and the CLI."""

import json
import uuid
from datetime import date, datetime, timedelta, timezone

from click.testing import CliRunner

from automation_engine import cli as cli_module
from automation_engine.db.enums import AuditEventType, Role
from automation_engine.db.models import AuditLog, Notification, WeeklySummary
from automation_engine.jobs import periodic
from automation_engine.services import (
    action_item_service,
    alert_service,
    pipeline_service,
    summary_service,
)
from tests.conftest import make_user


def _job_runs(db, job):
    rows = db.query(AuditLog).filter(AuditLog.event_type == AuditEventType.SCHEDULED_JOB_RUN.value).all()
    return [r.details for r in rows if r.details["job"] == job]


# =============================================================================
# Weekly summary
# =============================================================================

def test_week_start_is_monday():
    assert summary_service.week_start(datetime(2026, 10, 22, 9, 0, tzinfo=timezone.utc)) == date(2026, 10, 19)
    assert summary_service.week_start(datetime(2026, 10, 19, 0, 0, tzinfo=timezone.utc)) == date(2026, 10, 19)


def test_summary_counts_this_weeks_activity(db, founder, volunteer):
    action_item_service.create_action_item(
        db, title="Open", item_type="task", assignee_ids=[volunteer.id], assigned_by_user_id=founder.id
    )
    done = action_item_service.create_action_item(
        db, title="Done", item_type="task", assignee_ids=[volunteer.id], assigned_by_user_id=founder.id
    )
    action_item_service.transition_status(db, done.id, "completed", volunteer)
    alert_service.create_alert(db, department="Outreach", severity="low", message="Flyers", triggered_by="system")
    pipeline_service.seed_default_stages(db, "volunteer")
    entry = pipeline_service.enroll(db, uuid.uuid4(), "volunteer")
    pipeline_service.advance_to_next(db, entry.id, founder)

    summary = summary_service.generate_weekly_summary(db)

    items = summary.sections["action_items"]
    # The enrollment review counts as a created item too
    assert items["created"] == 3
    assert items["completed"] == 1
    assert items["created_by_status"]["pending"] == 2
    assert summary.sections["alerts"]["created"] == 1
    assert summary.sections["pipeline"] == {"enrolled": 1, "stage_moves": 1}
    assert summary.sections["ai_actions"]["executed"] == 0

    assert summary.sent_count == 1
    note = db.query(Notification).filter(Notification.entity_id == summary.id).one()
    assert note.user_id == founder.id
    assert note.message.startswith("Action items: 3 created, 1 completed")


def test_regenerating_a_week_overwrites(db, founder):
    now = datetime.now(timezone.utc)
    first = summary_service.generate_weekly_summary(db, now=now)
    action_item_service.create_action_item(db, title="Late addition", item_type="task")
    second = summary_service.generate_weekly_summary(db, now=now + timedelta(minutes=5))

    assert first.id == second.id
    assert db.query(WeeklySummary).count() == 1
    assert second.sections["action_items"]["created"] == 1


def test_regenerating_a_week_notifies_once(db, founder):
    now = datetime.now(timezone.utc)
    first = summary_service.generate_weekly_summary(db, now=now)
    second = summary_service.generate_weekly_summary(db, now=now + timedelta(hours=1))

    assert first.id == second.id
    assert second.sent_count == 1
    assert second.notified_at is not None
    notes = db.query(Notification).filter(Notification.entity_id == second.id).all()
    assert [n.user_id for n in notes] == [founder.id]


def test_failed_fan_out_is_retried_next_run(db, founder, monkeypatch):
    now = datetime.now(timezone.utc)
    monkeypatch.setattr(
        summary_service.notification_service, "fan_out_best_effort", lambda db, **kwargs: None
    )
    first = summary_service.generate_weekly_summary(db, now=now)
    assert first.notified_at is None

    monkeypatch.undo()
    second = summary_service.generate_weekly_summary(db, now=now + timedelta(minutes=1))

    assert second.sent_count == 1
    assert db.query(Notification).filter(Notification.entity_id == second.id).count() == 1


def test_summary_without_audience_members_still_stored(db):
    summary = summary_service.generate_weekly_summary(db)

    assert summary.sent_count == 0
    assert summary_service.get_summary(db, summary.week_of) is not None


# =============================================================================
# Periodic jobs
# =============================================================================

def test_overdue_sweep_job_records_run(db, founder, volunteer):
    now = datetime.now(timezone.utc)
    action_item_service.create_action_item(
        db, title="Late", item_type="task", assignee_ids=[volunteer.id], due_date=now - timedelta(days=1)
    )

    result = periodic.run_overdue_sweep(db, now=now)

    assert result == {"processed": 1, "failed": 0}
    assert _job_runs(db, "overdue_sweep") == [{"job": "overdue_sweep", "processed": 1, "failed": 0}]


def test_reminder_job_reports_counters(db, mail_sender):
    result = periodic.run_reminder_dispatch(db, mail_sender=mail_sender)

    assert result == {"processed": 0, "failed": 0, "sent": 0, "skipped": 0}
    assert len(_job_runs(db, "reminders")) == 1


def test_reminder_job_counts_failure(db, monkeypatch):
    def boom(db, now=None, mail_sender=None):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(periodic.reminder_service, "dispatch", boom)

    result = periodic.run_reminder_dispatch(db)

    assert result == {"processed": 0, "failed": 1, "sent": 0, "skipped": 0}
    assert _job_runs(db, "reminders")[0]["failed"] == 1


def test_overdue_sweep_job_counts_failure(db, monkeypatch):
    def boom(db, now=None):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(periodic.action_item_service, "sweep_overdue", boom)

    result = periodic.run_overdue_sweep(db)

    assert result == {"processed": 0, "failed": 1}
    assert _job_runs(db, "overdue_sweep") == [{"job": "overdue_sweep", "processed": 0, "failed": 1}]


def test_weekly_summary_job_twice_notifies_once(db, founder):
    now = datetime.now(timezone.utc)
    periodic.run_weekly_summary(db, now=now)
    result = periodic.run_weekly_summary(db, now=now + timedelta(hours=2))

    assert result["processed"] == 1
    assert result["sent_count"] == 1
    assert db.query(Notification).filter(Notification.user_id == founder.id).count() == 1


def test_weekly_summary_job_counts_failure(db, monkeypatch):
    def boom(db, now=None):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(summary_service, "generate_weekly_summary", boom)

    result = periodic.run_weekly_summary(db)

    assert result == {"processed": 0, "failed": 1}
    assert _job_runs(db, "weekly_summary")[0]["failed"] == 1


def test_weekly_summary_job_success(db, founder):
    result = periodic.run_weekly_summary(db)

    assert result["processed"] == 1
    assert result["sent_count"] == 1
    assert result["week_of"] == summary_service.week_start(datetime.now(timezone.utc)).isoformat()


# =============================================================================
# CLI
# =============================================================================

def test_cli_sweep_overdue(db, session_factory, monkeypatch):
    monkeypatch.setattr(cli_module, "SessionLocal", session_factory)
    volunteer = make_user(db, Role.VOLUNTEER)
    action_item_service.create_action_item(
        db,
        title="Late",
        item_type="task",
        assignee_ids=[volunteer.id],
        due_date=datetime.now(timezone.utc) - timedelta(hours=3),
    )

    result = CliRunner().invoke(cli_module.cli, ["sweep-overdue"])

    assert result.exit_code == 0
    assert json.loads(result.output.strip().splitlines()[-1]) == {"processed": 1, "failed": 0}


def test_cli_seed_stages(db, session_factory, monkeypatch):
    monkeypatch.setattr(cli_module, "SessionLocal", session_factory)

    result = CliRunner().invoke(cli_module.cli, ["seed-stages", "--applicant-type", "teacher"])

    assert result.exit_code == 0
    assert "teacher: 5 stages created" in result.output
    assert [s.stage_name for s in pipeline_service.list_stages(db, "teacher")][0] == "New"


def test_cli_exit_code_on_failure(session_factory, monkeypatch):
    monkeypatch.setattr(cli_module, "SessionLocal", session_factory)
    monkeypatch.setitem(
        periodic.PERIODIC_JOBS, "weekly-summary", lambda db: {"processed": 0, "failed": 1}
    )

    result = CliRunner().invoke(cli_module.cli, ["weekly-summary"])

    assert result.exit_code == 1
