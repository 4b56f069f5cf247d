"""SQLAlchemy ORM models for profiles, plans, sessions and adjustment history."""
import datetime as dt
from datetime import date, datetime
from sqlalchemy import Integer, Date, DateTime, Float, String, Boolean, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cycleplan.database import Base
from cycleplan.models.plan import utc_now


class BodyProfile(Base):
    """Physiological profile of an account."""

    __tablename__ = "body_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    weight: Mapped[float | None] = mapped_column(Float, nullable=True)  # kg
    height: Mapped[float | None] = mapped_column(Float, nullable=True)  # cm
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(10), nullable=True)  # male, female, other
    activity_level: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)


class CyclingPlan(Base):
    """Weight goal turned into a daily cycling schedule."""

    __tablename__ = "cycling_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Goal (immutable once the plan exists)
    current_weight: Mapped[float] = mapped_column(Float, nullable=False)
    target_weight: Mapped[float] = mapped_column(Float, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    target_date: Mapped[date] = mapped_column(Date, nullable=False)

    total_days: Mapped[int] = mapped_column(Integer, nullable=False)
    missed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_missed_hours: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    emergency_catch_up: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Auto adjustment settings
    auto_adjust_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    max_daily_hours: Mapped[float] = mapped_column(Float, default=3.0, nullable=False)
    grace_period_days: Mapped[int] = mapped_column(Integer, default=2, nullable=False)
    weekly_reset_threshold: Mapped[int] = mapped_column(Integer, default=7, nullable=False)

    # Plan summary
    bmr: Mapped[float] = mapped_column(Float, nullable=False)
    tdee: Mapped[float] = mapped_column(Float, nullable=False)
    daily_calorie_goal: Mapped[float] = mapped_column(Float, nullable=False)
    daily_cycling_hours: Mapped[float] = mapped_column(Float, nullable=False)
    total_cycling_hours: Mapped[float] = mapped_column(Float, nullable=False)
    total_calories_to_burn: Mapped[float] = mapped_column(Float, nullable=False)
    total_plan_days: Mapped[int] = mapped_column(Integer, nullable=False)
    plan_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Optimistic concurrency token
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    sessions: Mapped[list["PlanSession"]] = relationship(
        "PlanSession",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlanSession.date",
    )
    adjustments: Mapped[list["AdjustmentLog"]] = relationship(
        "AdjustmentLog",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="AdjustmentLog.id",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        # At most one active plan per account
        Index(
            "ix_cycling_plans_one_active",
            "account_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )


class PlanSession(Base):
    """One calendar day inside a cycling plan."""

    __tablename__ = "plan_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey("cycling_plans.id"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)

    planned_hours: Mapped[float] = mapped_column(Float, nullable=False)
    adjusted_hours: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)  # signed delta
    completed_hours: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    missed_hours: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    calories_burned: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)  # pending, in_progress, completed, missed, rescheduled

    # Reschedule info
    rescheduled_from: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    reschedule_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)

    acknowledged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Relationship
    plan: Mapped["CyclingPlan"] = relationship("CyclingPlan", back_populates="sessions")


class AdjustmentLog(Base):
    """Append-only adjustment history entry."""

    __tablename__ = "adjustment_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey("cycling_plans.id"), nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    missed_hours: Mapped[float] = mapped_column(Float, nullable=False)
    new_daily_target: Mapped[float] = mapped_column(Float, nullable=False)
    new_daily_calories: Mapped[float | None] = mapped_column(Float, nullable=True)
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)

    # Relationship
    plan: Mapped["CyclingPlan"] = relationship("CyclingPlan", back_populates="adjustments")
