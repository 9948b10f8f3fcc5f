"""Task generation and onboarding - generation keys, teacher requests, onboarding packets

Revision ID: 0002_task_generation_onboarding
Revises: 0001_baseline
Create Date: 2026-10-19

Column additions go through batch_alter_table so SQLite can rebuild the
table for the new unique and foreign key constraints.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0002_task_generation_onboarding'
down_revision: Union[str, Sequence[str], None] = '0001_baseline'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    with op.batch_alter_table("action_items") as batch:
        batch.add_column(sa.Column("generation_key", sa.String(200), nullable=True))
        batch.create_unique_constraint("uq_action_items_generation_key", ["generation_key"])

    with op.batch_alter_table("presentations") as batch:
        batch.add_column(sa.Column("captain_user_id", sa.Uuid(), nullable=True))
        batch.create_foreign_key(
            "fk_presentations_captain_user_id",
            "users",
            ["captain_user_id"],
            ["id"],
            ondelete="SET NULL",
        )

    with op.batch_alter_table("weekly_summaries") as batch:
        batch.add_column(sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True))

    op.create_table(
        "teacher_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("school_name", sa.String(255), nullable=False),
        sa.Column("contact_name", sa.String(255), nullable=False),
        sa.Column("contact_email", sa.String(255), nullable=False),
        sa.Column("grade_level", sa.String(50), nullable=True),
        sa.Column("subject", sa.String(100), nullable=True),
        sa.Column("student_count", sa.Integer(), nullable=True),
        sa.Column("preferred_dates", JSONType, nullable=False),
        sa.Column("special_requirements", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="new"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "onboarding_packets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "volunteer_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
        ),
        sa.Column("includes", JSONType, nullable=False),
        sa.Column("content", JSONType, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="generated"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "generated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("onboarding_packets")
    op.drop_table("teacher_requests")

    with op.batch_alter_table("weekly_summaries") as batch:
        batch.drop_column("notified_at")

    with op.batch_alter_table("presentations") as batch:
        batch.drop_constraint("fk_presentations_captain_user_id", type_="foreignkey")
        batch.drop_column("captain_user_id")

    with op.batch_alter_table("action_items") as batch:
        batch.drop_constraint("uq_action_items_generation_key", type_="unique")
        batch.drop_column("generation_key")
