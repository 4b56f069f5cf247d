"""Domain types for cycling plans, sessions and adjustment history.

The planning core works on these plain dataclasses only; the SQLAlchemy rows
in ``database_models`` mirror them and ``plan_store`` converts between the two.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

# Hard per-day ceiling for effective required hours (planned + adjusted).
HARD_DAILY_CEILING_HOURS = 4.0


def utc_now() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class ActivityLevel(str, Enum):
    SEDENTARY = "sedentary"
    LIGHT = "light"
    MODERATE = "moderate"
    ACTIVE = "active"
    VERY_ACTIVE = "very_active"


class SessionStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MISSED = "missed"
    RESCHEDULED = "rescheduled"


@dataclass
class Profile:
    """Physiological profile used for BMR/TDEE maths. Any field may be unset."""

    weight: float | None = None  # kg
    height: float | None = None  # cm
    birth_date: date | None = None
    gender: str | None = None
    activity_level: str | None = None

    def missing_fields(self) -> list[str]:
        missing = []
        for name in ("weight", "height", "birth_date", "gender", "activity_level"):
            value = getattr(self, name)
            if value is None or value == "" or (name in ("weight", "height") and value <= 0):
                missing.append(name)
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


@dataclass(frozen=True)
class Goal:
    """Weight-change goal. Immutable once a plan has been generated from it."""

    current_weight: float
    target_weight: float
    start_date: date
    target_date: date


@dataclass(frozen=True)
class RescheduleInfo:
    original_date: date
    reason: str | None = None


@dataclass
class Session:
    """One calendar day of the plan."""

    date: date
    planned_hours: float
    adjusted_hours: float = 0.0  # signed delta from redistribution
    completed_hours: float = 0.0
    missed_hours: float = 0.0
    calories_burned: float = 0.0
    status: SessionStatus = SessionStatus.PENDING
    reschedule_info: RescheduleInfo | None = None
    completed_at: datetime | None = None
    acknowledged: bool = False
    id: int | None = None

    @property
    def required_hours(self) -> float:
        """Effective hours for the day, clamped to [0, hard ceiling]."""

        return min(max(0.0, self.planned_hours + self.adjusted_hours), HARD_DAILY_CEILING_HOURS)


@dataclass
class AutoAdjustmentSettings:
    enabled: bool = True
    max_daily_hours: float = 3.0
    grace_period_days: int = 2
    weekly_reset_threshold: int = 7


@dataclass
class PlanSummary:
    bmr: float
    tdee: float
    daily_calorie_goal: float
    daily_cycling_hours: float
    total_cycling_hours: float
    total_calories_to_burn: float
    total_plan_days: int
    plan_type: str


@dataclass(frozen=True)
class AdjustmentRecord:
    """Append-only entry in a plan's adjustment history."""

    timestamp: datetime
    missed_hours: float
    new_daily_target: float
    reason: str
    method: str
    new_daily_calories: float | None = None


@dataclass
class Plan:
    account_id: str
    goal: Goal
    total_days: int
    sessions: list[Session]
    plan_summary: PlanSummary
    auto_adjustment_settings: AutoAdjustmentSettings = field(default_factory=AutoAdjustmentSettings)
    missed_count: int = 0
    total_missed_hours: float = 0.0
    is_active: bool = True
    emergency_catch_up: bool = False
    adjustment_history: list[AdjustmentRecord] = field(default_factory=list)
    id: int | None = None
    version: int | None = None
    created_at: datetime | None = None

    def session_for(self, day: date) -> Session | None:
        for session in self.sessions:
            if session.date == day:
                return session
        return None

    def day_number(self, session: Session) -> int:
        """1-based position of the session in the schedule."""

        return self.sessions.index(session) + 1

    def pending_from(self, day: date) -> list[Session]:
        """Pending sessions dated on or after ``day``, in date order."""

        return sorted(
            (s for s in self.sessions if s.status == SessionStatus.PENDING and s.date >= day),
            key=lambda s: s.date,
        )

    def sessions_with_status(self, status: SessionStatus) -> list[Session]:
        return [s for s in self.sessions if s.status == status]

    def record_adjustment(self, record: AdjustmentRecord) -> None:
        self.adjustment_history.append(record)
