"""Record where each daily step row came from

Revision ID: 20240412001
Revises: 20240405001
Create Date: 2024-04-12 00:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20240412001"
down_revision = "20240405001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "daily_steps",
        sa.Column("source", sa.String(length=16), nullable=False, server_default="upload"),
    )


def downgrade() -> None:
    op.drop_column("daily_steps", "source")
