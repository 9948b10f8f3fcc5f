"""Baseline migration - identity, action items, pipeline, AI actions, reminders, alerts

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Portable types (Uuid, JSON with a JSONB variant, timezone-aware
timestamps) so the same revision runs on PostgreSQL and SQLite.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _ts(name: str, nullable: bool = False, server_default: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.func.now() if server_default else None,
    )


def _user_fk(name: str, ondelete: str = "SET NULL", nullable: bool = True) -> sa.Column:
    return sa.Column(
        name, sa.Uuid(), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable
    )


def upgrade() -> None:
    """Create all engine tables."""

    # ==========================================================================
    # Identity
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=True),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default="1"),
        _ts("created_at", server_default=True),
    )
    op.create_table(
        "teams",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        _ts("created_at", server_default=True),
    )
    op.create_table(
        "team_members",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "team_id", sa.Uuid(), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
        ),
        _user_fk("user_id", ondelete="CASCADE", nullable=False),
        sa.UniqueConstraint("team_id", "user_id", name="uq_team_member"),
    )

    # ==========================================================================
    # Action items
    # ==========================================================================
    op.create_table(
        "action_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("item_type", sa.String(50), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("audience", sa.String(120), nullable=True),
        _user_fk("assigned_by_user_id"),
        _ts("due_date", nullable=True),
        sa.Column("metadata", JSONType, nullable=False),
        sa.Column("related_entity_type", sa.String(50), nullable=True),
        sa.Column("related_entity_id", sa.Uuid(), nullable=True),
        sa.Column("is_system_generated", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("completed_at", nullable=True),
        _user_fk("completed_by_user_id"),
        _ts("created_at", server_default=True),
        _ts("updated_at", server_default=True),
    )
    op.create_index("idx_action_items_status_due", "action_items", ["status", "due_date"])
    op.create_index(
        "idx_action_items_related", "action_items", ["related_entity_type", "related_entity_id"]
    )
    op.create_index("idx_action_items_created", "action_items", ["created_at"])

    op.create_table(
        "action_item_assignees",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "action_item_id",
            sa.Uuid(),
            sa.ForeignKey("action_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("user_id", ondelete="CASCADE", nullable=False),
        sa.UniqueConstraint("action_item_id", "user_id", name="uq_action_item_assignee"),
    )
    op.create_index("idx_action_item_assignees_user", "action_item_assignees", ["user_id"])

    op.create_table(
        "action_item_comments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "action_item_id",
            sa.Uuid(),
            sa.ForeignKey("action_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("author_user_id"),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("created_at", server_default=True),
        _ts("updated_at", nullable=True),
    )
    op.create_index(
        "idx_action_item_comments_item", "action_item_comments", ["action_item_id", "created_at"]
    )

    op.create_table(
        "action_item_history",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "action_item_id",
            sa.Uuid(),
            sa.ForeignKey("action_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("actor_user_id"),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("details", JSONType, nullable=True),
        _ts("created_at", server_default=True),
    )
    op.create_index(
        "idx_action_item_history_item", "action_item_history", ["action_item_id", "created_at"]
    )

    # ==========================================================================
    # Recruitment pipeline
    # ==========================================================================
    op.create_table(
        "pipeline_stages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("applicant_type", sa.String(30), nullable=False),
        sa.Column("stage_name", sa.String(100), nullable=False),
        sa.Column("stage_order", sa.Integer(), nullable=False),
        sa.Column("auto_actions", JSONType, nullable=False),
        sa.Column("requirements", JSONType, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at", server_default=True),
        sa.UniqueConstraint("applicant_type", "stage_name", name="uq_pipeline_stage_name"),
    )
    op.create_index(
        "idx_pipeline_stages_type_order", "pipeline_stages", ["applicant_type", "stage_order"]
    )

    op.create_table(
        "pipeline_entries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("applicant_id", sa.Uuid(), nullable=False),
        sa.Column("applicant_type", sa.String(30), nullable=False),
        sa.Column("current_stage", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="new"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("notes", sa.Text(), nullable=True),
        _user_fk("assigned_to_user_id"),
        _ts("created_at", server_default=True),
        _ts("updated_at", server_default=True),
        sa.UniqueConstraint("applicant_id", "applicant_type", name="uq_pipeline_entry_applicant"),
    )
    op.create_index(
        "idx_pipeline_entries_type_stage", "pipeline_entries", ["applicant_type", "current_stage"]
    )

    op.create_table(
        "pipeline_stage_changes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "entry_id",
            sa.Uuid(),
            sa.ForeignKey("pipeline_entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_stage", sa.String(100), nullable=True),
        sa.Column("to_stage", sa.String(100), nullable=False),
        _user_fk("changed_by_user_id"),
        _ts("changed_at", server_default=True),
    )
    op.create_index(
        "idx_pipeline_stage_changes_entry", "pipeline_stage_changes", ["entry_id", "changed_at"]
    )

    op.create_table(
        "pipeline_stage_action_firings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "entry_id",
            sa.Uuid(),
            sa.ForeignKey("pipeline_entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("stage_name", sa.String(100), nullable=False),
        sa.Column("action_kind", sa.String(50), nullable=False),
        sa.Column(
            "action_item_id",
            sa.Uuid(),
            sa.ForeignKey("action_items.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _ts("fired_at", server_default=True),
        sa.UniqueConstraint(
            "entry_id", "stage_name", "action_kind", name="uq_stage_action_firing"
        ),
    )

    # ==========================================================================
    # AI actions
    # ==========================================================================
    op.create_table(
        "ai_actions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("proposed_by_user_id"),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("payload", JSONType, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="proposed"),
        _user_fk("approved_by_user_id"),
        _ts("approved_at", nullable=True),
        _ts("executed_at", nullable=True),
        sa.Column("results", JSONType, nullable=True),
        _ts("created_at", server_default=True),
    )
    op.create_index("idx_ai_actions_status_created", "ai_actions", ["status", "created_at"])
    op.create_index("idx_ai_actions_proposer", "ai_actions", ["proposed_by_user_id", "created_at"])

    # ==========================================================================
    # Scheduling targets and reminders
    # ==========================================================================
    op.create_table(
        "presentations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "team_id", sa.Uuid(), sa.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("school_name", sa.String(255), nullable=False),
        sa.Column("topic", sa.String(255), nullable=True),
        _ts("scheduled_at"),
        sa.Column("teacher_name", sa.String(255), nullable=True),
        sa.Column("teacher_email", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        _ts("created_at", server_default=True),
    )
    op.create_table(
        "team_meetings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "team_id", sa.Uuid(), sa.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("location", sa.Text(), nullable=True),
        _ts("scheduled_at"),
        _ts("created_at", server_default=True),
    )

    op.create_table(
        "reminders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("entity_type", sa.String(30), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("reminder_type", sa.String(50), nullable=False),
        _ts("scheduled_for"),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("audience", sa.String(120), nullable=True),
        sa.Column("recipient_email", sa.String(255), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("details", JSONType, nullable=True),
        _ts("claimed_at", nullable=True),
        _ts("sent_at", nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        _ts("created_at", server_default=True),
        sa.UniqueConstraint(
            "entity_type",
            "entity_id",
            "reminder_type",
            "scheduled_for",
            name="uq_reminder_schedule",
        ),
    )
    op.create_index("idx_reminders_status_due", "reminders", ["status", "scheduled_for"])
    op.create_index("idx_reminders_entity", "reminders", ["entity_type", "entity_id"])

    # ==========================================================================
    # Alerts, notifications, summaries, audit
    # ==========================================================================
    op.create_table(
        "alerts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("department", sa.String(100), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("action_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("deadline", nullable=True),
        sa.Column("related_entity_type", sa.String(50), nullable=True),
        sa.Column("related_entity_id", sa.Uuid(), nullable=True),
        sa.Column("triggered_by", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        _user_fk("acknowledged_by_user_id"),
        _ts("acknowledged_at", nullable=True),
        _ts("resolved_at", nullable=True),
        _ts("created_at", server_default=True),
    )
    op.create_index(
        "idx_alerts_department_status", "alerts", ["department", "status", "created_at"]
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("user_id", ondelete="CASCADE"),
        sa.Column("audience_role", sa.String(30), nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("action_url", sa.String(500), nullable=True),
        sa.Column("entity_type", sa.String(50), nullable=True),
        sa.Column("entity_id", sa.Uuid(), nullable=True),
        _ts("read_at", nullable=True),
        _ts("created_at", server_default=True),
    )
    op.create_index("idx_notifications_user_created", "notifications", ["user_id", "created_at"])
    op.create_index(
        "idx_notifications_role_created", "notifications", ["audience_role", "created_at"]
    )

    op.create_table(
        "weekly_summaries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("week_of", sa.Date(), unique=True, nullable=False),
        sa.Column("sections", JSONType, nullable=False),
        sa.Column("sent_count", sa.Integer(), nullable=False, server_default="0"),
        _ts("generated_at", server_default=True),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("actor_user_id"),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("target_type", sa.String(50), nullable=True),
        sa.Column("target_id", sa.Uuid(), nullable=True),
        sa.Column("details", JSONType, nullable=True),
        _ts("created_at", server_default=True),
    )
    op.create_index("idx_audit_event_created", "audit_logs", ["event_type", "created_at"])
    op.create_index("idx_audit_target", "audit_logs", ["target_type", "target_id"])


def downgrade() -> None:
    """Drop all engine tables (reverse dependency order)."""
    for table in (
        "audit_logs",
        "weekly_summaries",
        "notifications",
        "alerts",
        "reminders",
        "team_meetings",
        "presentations",
        "ai_actions",
        "pipeline_stage_action_firings",
        "pipeline_stage_changes",
        "pipeline_entries",
        "pipeline_stages",
        "action_item_history",
        "action_item_comments",
        "action_item_assignees",
        "action_items",
        "team_members",
        "teams",
        "users",
    ):
        op.drop_table(table)
