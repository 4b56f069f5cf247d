"""Error kinds raised by the planning core.

Every error is recoverable at the caller level: surface it to the user, never
crash the process. The HTTP layer maps them to status codes.
"""
from __future__ import annotations

from datetime import date
from typing import Any


class PlanningError(Exception):
    """Base class for all scheduler errors."""

    code = "planning_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}


class ProfileIncomplete(PlanningError):
    """The body profile is missing fields required for metabolism maths."""

    code = "profile_incomplete"

    def __init__(self, missing_fields: list[str]) -> None:
        super().__init__(
            f"User profile is incomplete: missing {', '.join(missing_fields)}",
            missing_fields=missing_fields,
        )
        self.missing_fields = missing_fields


class InvalidGoal(PlanningError):
    code = "invalid_goal"


class UnsafeDeficit(PlanningError):
    """Generated plan would demand more than the daily calorie ceiling."""

    code = "unsafe_deficit"

    def __init__(self, daily_calorie_goal: float, limit: float) -> None:
        super().__init__(
            f"Daily calorie goal {daily_calorie_goal:.1f} kcal exceeds {limit:.0f} kcal - unsafe deficit",
            daily_calorie_goal=daily_calorie_goal,
            limit=limit,
        )


class UnsafeDuration(PlanningError):
    """Generated plan would demand more cycling per day than allowed."""

    code = "unsafe_duration"

    def __init__(self, daily_cycling_hours: float, limit: float) -> None:
        super().__init__(
            f"Daily cycling hours {daily_cycling_hours:.2f} exceed {limit:g} hours - unsafe limit",
            daily_cycling_hours=daily_cycling_hours,
            limit=limit,
        )


class UnsafeRedistribution(PlanningError):
    """Spreading the deficit would push the daily target past maxDailyHours."""

    code = "unsafe_redistribution"

    def __init__(self, required_daily_hours: float, max_daily_hours: float) -> None:
        super().__init__(
            f"Redistribution would require {required_daily_hours:.2f} hours/day, "
            f"exceeding safe limit of {max_daily_hours:g} hours",
            required_daily_hours=required_daily_hours,
            max_daily_hours=max_daily_hours,
            suggestion="reset",
        )
        self.required_daily_hours = required_daily_hours
        self.max_daily_hours = max_daily_hours


class NoPendingSessions(PlanningError):
    code = "no_pending_sessions"

    def __init__(self) -> None:
        super().__init__("No remaining sessions to redistribute hours to")


class InvalidSessionTransition(PlanningError):
    code = "invalid_session_transition"

    def __init__(self, session_date: date, current: str, target: str) -> None:
        super().__init__(
            f"Session on {session_date.isoformat()} cannot move from {current} to {target}",
            session_date=session_date.isoformat(),
            current_status=current,
            target_status=target,
        )


class SessionNotFound(PlanningError):
    code = "session_not_found"

    def __init__(self, session_date: date) -> None:
        super().__init__(
            f"Session not found for {session_date.isoformat()}",
            session_date=session_date.isoformat(),
        )


class PlanNotFound(PlanningError):
    code = "plan_not_found"


class PlanConflict(PlanningError):
    """Optimistic version check failed: somebody else wrote the plan first."""

    code = "plan_conflict"
