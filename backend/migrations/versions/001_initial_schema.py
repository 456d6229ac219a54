"""Initial BedHeat schema."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("email", sa.String(255), primary_key=True),
        sa.Column("device_user_id", sa.String(255), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=False),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "sleep_schedules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "email",
            sa.String(255),
            sa.ForeignKey("users.email", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column(
            "phases",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "allow_manual_override", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        *_timestamps(),
    )
    op.create_index("ix_sleep_schedules_email", "sleep_schedules", ["email"])

    op.create_table(
        "user_temperature_profiles",
        sa.Column(
            "email",
            sa.String(255),
            sa.ForeignKey("users.email", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("timezone", sa.String(50), nullable=False),
        sa.Column("preheat_time", sa.String(5), nullable=False, server_default="21:00"),
        sa.Column("preheat_level", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("preheat_only", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "active_schedule_id",
            sa.Integer(),
            sa.ForeignKey("sleep_schedules.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("schedule_overridden_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_commanded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_commanded_level", sa.Integer(), nullable=True),
        sa.Column("manual_level_override_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("user_temperature_profiles")
    op.drop_index("ix_sleep_schedules_email", table_name="sleep_schedules")
    op.drop_table("sleep_schedules")
    op.drop_table("users")
