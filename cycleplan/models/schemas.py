"""Pydantic models describing API payloads."""
from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from cycleplan.models.plan import SessionStatus


# Profile Schemas
class ProfileUpdate(BaseModel):
    """Schema for storing a body profile. Fields may be left out."""

    weight: float | None = Field(None, gt=0, le=500, description="Body weight in kg")
    height: float | None = Field(None, gt=0, le=300, description="Height in cm")
    birth_date: date | None = None
    gender: Literal["male", "female", "other"] | None = None
    activity_level: Literal["sedentary", "light", "moderate", "active", "very_active"] | None = None


class ProfileResponse(ProfileUpdate):
    account_id: str
    is_complete: bool
    missing_fields: list[str] = []


# Plan Schemas
class PlanGenerateRequest(BaseModel):
    """Schema for generating a new cycling plan from a weight goal."""

    current_weight: float = Field(gt=0, le=500)
    target_weight: float = Field(gt=0, le=500)
    start_date: date
    target_date: date


class GoalResponse(BaseModel):
    current_weight: float
    target_weight: float
    start_date: date
    target_date: date

    model_config = ConfigDict(from_attributes=True)


class RescheduleInfoResponse(BaseModel):
    original_date: date
    reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class SessionResponse(BaseModel):
    """Schema for one planned day."""

    date: date
    planned_hours: float
    adjusted_hours: float
    required_hours: float
    completed_hours: float
    missed_hours: float
    calories_burned: float
    status: SessionStatus
    reschedule_info: RescheduleInfoResponse | None = None
    acknowledged: bool = False
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PlanSummaryResponse(BaseModel):
    bmr: float
    tdee: float
    daily_calorie_goal: float
    daily_cycling_hours: float
    total_cycling_hours: float
    total_calories_to_burn: float
    total_plan_days: int
    plan_type: str

    model_config = ConfigDict(from_attributes=True)


class AutoAdjustmentSettingsResponse(BaseModel):
    enabled: bool
    max_daily_hours: float
    grace_period_days: int
    weekly_reset_threshold: int

    model_config = ConfigDict(from_attributes=True)


class AdjustmentRecordResponse(BaseModel):
    timestamp: datetime
    missed_hours: float
    new_daily_target: float
    new_daily_calories: float | None = None
    reason: str
    method: str

    model_config = ConfigDict(from_attributes=True)


class PlanResponse(BaseModel):
    """Schema for a cycling plan with its full schedule."""

    id: int
    account_id: str
    goal: GoalResponse
    total_days: int
    missed_count: int
    total_missed_hours: float
    is_active: bool
    emergency_catch_up: bool
    plan_summary: PlanSummaryResponse
    auto_adjustment_settings: AutoAdjustmentSettingsResponse
    adjustment_history: list[AdjustmentRecordResponse] = []
    sessions: list[SessionResponse] = []
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


# Status Schemas
class TodaySessionResponse(BaseModel):
    day_number: int
    status: str
    planned_hours: float
    required_hours: float
    completed_hours: float

    model_config = ConfigDict(from_attributes=True)


class PlanStatusResponse(BaseModel):
    day1_date: date | None
    current_date: date
    days_since_start: int
    day1_status: str
    day1_missed: bool
    today_session: TodaySessionResponse | None = None
    completion_rate: int = Field(ge=0, le=100)
    total_expected_by_now: int
    completed_sessions: int
    missed_sessions: int
    on_track: bool
    total_sessions: int

    model_config = ConfigDict(from_attributes=True)


class AlertResponse(BaseModel):
    type: str
    severity: str
    title: str
    message: str
    action: str
    missed_days: int | None = None

    model_config = ConfigDict(from_attributes=True)


class AdjustmentResponse(BaseModel):
    """Outcome of the redistribute-or-reset decision."""

    kind: Literal["redistribute", "reset", "none"]
    message: str
    details: dict[str, Any] = {}
    plan: PlanResponse


class CheckInResponse(BaseModel):
    new_missed: list[SessionResponse] = []
    status: PlanStatusResponse
    adjustment: AdjustmentResponse | None = None
    paused: bool = False
    alerts: list[AlertResponse] = []


# Session Update Schemas
class ProgressUpdate(BaseModel):
    """Schema for adding ridden hours to a session."""

    hours: float = Field(ge=0, le=24)
    completed_at: datetime | None = None


class CompletionUpdate(BaseModel):
    """Schema for marking a day as complete."""

    hours: float | None = Field(None, ge=0, le=24)
    completed_at: datetime | None = None


class CatchUpRequest(BaseModel):
    hours: float = Field(gt=0, le=24)
    completed_at: datetime | None = None


class RescheduleRequest(BaseModel):
    new_date: date
    reason: str | None = Field(None, max_length=200)
