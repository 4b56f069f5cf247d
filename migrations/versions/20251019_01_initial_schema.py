"""Initial cycling plan schema."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20251019_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "body_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("weight", sa.Float(), nullable=True),
        sa.Column("height", sa.Float(), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(length=10), nullable=True),
        sa.Column("activity_level", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_body_profiles_account_id", "body_profiles", ["account_id"], unique=True)

    op.create_table(
        "cycling_plans",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("current_weight", sa.Float(), nullable=False),
        sa.Column("target_weight", sa.Float(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("target_date", sa.Date(), nullable=False),
        sa.Column("total_days", sa.Integer(), nullable=False),
        sa.Column("missed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_missed_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("emergency_catch_up", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_adjust_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("max_daily_hours", sa.Float(), nullable=False, server_default="3"),
        sa.Column("grace_period_days", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("weekly_reset_threshold", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("bmr", sa.Float(), nullable=False),
        sa.Column("tdee", sa.Float(), nullable=False),
        sa.Column("daily_calorie_goal", sa.Float(), nullable=False),
        sa.Column("daily_cycling_hours", sa.Float(), nullable=False),
        sa.Column("total_cycling_hours", sa.Float(), nullable=False),
        sa.Column("total_calories_to_burn", sa.Float(), nullable=False),
        sa.Column("total_plan_days", sa.Integer(), nullable=False),
        sa.Column("plan_type", sa.String(length=50), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_cycling_plans_account_id", "cycling_plans", ["account_id"], unique=False)
    op.create_index(
        "ix_cycling_plans_one_active",
        "cycling_plans",
        ["account_id"],
        unique=True,
        sqlite_where=sa.text("is_active = 1"),
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "plan_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("cycling_plans.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("planned_hours", sa.Float(), nullable=False),
        sa.Column("adjusted_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("completed_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("missed_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("calories_burned", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("rescheduled_from", sa.Date(), nullable=True),
        sa.Column("reschedule_reason", sa.String(length=200), nullable=True),
        sa.Column("acknowledged", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_plan_sessions_plan_id", "plan_sessions", ["plan_id"], unique=False)
    op.create_index("ix_plan_sessions_date", "plan_sessions", ["date"], unique=False)

    op.create_table(
        "adjustment_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("cycling_plans.id"), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("missed_hours", sa.Float(), nullable=False),
        sa.Column("new_daily_target", sa.Float(), nullable=False),
        sa.Column("new_daily_calories", sa.Float(), nullable=True),
        sa.Column("reason", sa.String(length=50), nullable=False),
        sa.Column("method", sa.String(length=50), nullable=False),
    )
    op.create_index("ix_adjustment_records_plan_id", "adjustment_records", ["plan_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_adjustment_records_plan_id", table_name="adjustment_records")
    op.drop_table("adjustment_records")
    op.drop_index("ix_plan_sessions_date", table_name="plan_sessions")
    op.drop_index("ix_plan_sessions_plan_id", table_name="plan_sessions")
    op.drop_table("plan_sessions")
    op.drop_index("ix_cycling_plans_one_active", table_name="cycling_plans")
    op.drop_index("ix_cycling_plans_account_id", table_name="cycling_plans")
    op.drop_table("cycling_plans")
    op.drop_index("ix_body_profiles_account_id", table_name="body_profiles")
    op.drop_table("body_profiles")
