"""CLI tools for running periodic passes and bootstrapping pipelines."""

import json

import click

from automation_engine.core.config import settings
from automation_engine.core.structured_logging import configure_logging
from automation_engine.db.enums import ApplicantType
from automation_engine.db.session import SessionLocal
from automation_engine.jobs import periodic
from automation_engine.services import pipeline_service


@click.group()
def cli():
    """Workflow engine CLI tools."""
    configure_logging(settings.LOG_LEVEL)


def _run_job(name: str) -> None:
    db = SessionLocal()
    try:
        result = periodic.PERIODIC_JOBS[name](db)
        click.echo(json.dumps(result))
        if result.get("failed"):
            raise SystemExit(1)
    finally:
        db.close()


@cli.command("dispatch-reminders")
def dispatch_reminders():
    """
    Send every due reminder.

    Example:
        python -m automation_engine.cli dispatch-reminders
    """
    _run_job("reminders")


@cli.command("sweep-overdue")
def sweep_overdue():
    """Mark past-due open action items overdue."""
    _run_job("overdue-sweep")


@cli.command("weekly-summary")
def weekly_summary():
    """Generate and send this week's summary."""
    _run_job("weekly-summary")


@cli.command("seed-stages")
@click.option(
    "--applicant-type",
    type=click.Choice([t.value for t in ApplicantType]),
    multiple=True,
    help="Applicant type to seed (repeatable; default: all)",
)
def seed_stages(applicant_type: tuple[str, ...]):
    """Create the default pipeline board (New .. Onboarded) where missing."""
    db = SessionLocal()
    try:
        for value in applicant_type or [t.value for t in ApplicantType]:
            created = pipeline_service.seed_default_stages(db, value)
            click.echo(f"✓ {value}: {len(created)} stages created")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    finally:
        db.close()


if __name__ == "__main__":
    cli()
