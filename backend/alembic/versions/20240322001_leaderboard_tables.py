"""Create groups, participants, weekly challenges and leaderboard entries

Revision ID: 20240322001
Revises:
Create Date: 2024-03-22 00:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.sql import text


# revision identifiers, used by Alembic.
revision = "20240322001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "groups",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_groups_created_by", "groups", ["created_by"])

    op.create_table(
        "participants",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("group_id", sa.String(), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("group_id", "user_id", name="uq_participants_group_user"),
    )
    op.create_index("ix_participants_group_id", "participants", ["group_id"])
    op.create_index("ix_participants_user_id", "participants", ["user_id"])
    op.execute(text("CREATE INDEX IF NOT EXISTS idx_participants_name_lc ON participants (group_id, LOWER(name))"))

    op.create_table(
        "weekly_challenges",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("group_id", sa.String(), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("week_start_date", sa.Date(), nullable=False),
        sa.Column("week_end_date", sa.Date(), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("group_id", "week_number", "year", name="uq_weekly_challenges_group_week"),
    )
    op.create_index("ix_weekly_challenges_group_id", "weekly_challenges", ["group_id"])
    op.create_index("idx_weekly_challenges_week", "weekly_challenges", ["week_number", "year"])

    op.create_table(
        "leaderboard_entries",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column(
            "challenge_id",
            sa.String(),
            sa.ForeignKey("weekly_challenges.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("participant_id", sa.String(), sa.ForeignKey("participants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("steps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("distance", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rank", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("challenge_id", "participant_id", name="uq_leaderboard_entries_challenge_participant"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_leaderboard_entries_challenge_id", "leaderboard_entries", ["challenge_id"])
    op.create_index("ix_leaderboard_entries_participant_id", "leaderboard_entries", ["participant_id"])
    op.create_index("idx_leaderboard_entries_rank", "leaderboard_entries", ["rank"])


def downgrade() -> None:
    op.drop_index("idx_leaderboard_entries_rank", table_name="leaderboard_entries")
    op.drop_index("ix_leaderboard_entries_participant_id", table_name="leaderboard_entries")
    op.drop_index("ix_leaderboard_entries_challenge_id", table_name="leaderboard_entries")
    op.drop_table("leaderboard_entries")
    op.drop_index("idx_weekly_challenges_week", table_name="weekly_challenges")
    op.drop_index("ix_weekly_challenges_group_id", table_name="weekly_challenges")
    op.drop_table("weekly_challenges")
    op.execute(text("DROP INDEX IF EXISTS idx_participants_name_lc"))
    op.drop_index("ix_participants_user_id", table_name="participants")
    op.drop_index("ix_participants_group_id", table_name="participants")
    op.drop_table("participants")
    op.drop_index("ix_groups_created_by", table_name="groups")
    op.drop_table("groups")
