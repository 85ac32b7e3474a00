"""Store daily step rows, flag seed participants and log uploads

Revision ID: 20240405001
Revises: 20240322001
Create Date: 2024-04-05 00:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20240405001"
down_revision = "20240322001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "daily_steps",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column(
            "challenge_id",
            sa.String(),
            sa.ForeignKey("weekly_challenges.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("participant_id", sa.String(), sa.ForeignKey("participants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("step_date", sa.Date(), nullable=False),
        sa.Column("steps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("distance", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "challenge_id",
            "participant_id",
            "step_date",
            name="uq_daily_steps_challenge_participant_date",
        ),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_daily_steps_challenge_id", "daily_steps", ["challenge_id"])
    op.create_index("ix_daily_steps_participant_id", "daily_steps", ["participant_id"])
    op.create_index("idx_daily_steps_date", "daily_steps", ["step_date"])

    op.add_column(
        "participants",
        sa.Column("is_seed_data", sa.Boolean(), nullable=False, server_default=sa.text("0")),
    )
    # Demo rows used to be recognised by their e-mail domain.
    participants = sa.table(
        "participants",
        sa.column("email", sa.Text()),
        sa.column("is_seed_data", sa.Boolean()),
    )
    op.execute(
        participants.update()
        .where(participants.c.email.like("%@example.com"))
        .values(is_seed_data=True)
    )

    op.create_table(
        "upload_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("resource", sa.String(), nullable=False),
        sa.Column("group_id", sa.String(), nullable=True),
        sa.Column("challenge_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="success"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("rows_succeeded", sa.Integer(), nullable=True),
        sa.Column("rows_failed", sa.Integer(), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_upload_logs_group_id", "upload_logs", ["group_id"])


def downgrade() -> None:
    op.drop_index("ix_upload_logs_group_id", table_name="upload_logs")
    op.drop_table("upload_logs")
    op.drop_column("participants", "is_seed_data")
    op.drop_index("idx_daily_steps_date", table_name="daily_steps")
    op.drop_index("ix_daily_steps_participant_id", table_name="daily_steps")
    op.drop_index("ix_daily_steps_challenge_id", table_name="daily_steps")
    op.drop_table("daily_steps")
