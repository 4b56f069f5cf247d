"""Plan generation: turns a goal and a body profile into a daily schedule."""
from __future__ import annotations

import logging
import math
from datetime import date, timedelta

from cycleplan.config import Settings
from cycleplan.errors import InvalidGoal, ProfileIncomplete, UnsafeDeficit, UnsafeDuration
from cycleplan.models.plan import (
    AutoAdjustmentSettings,
    Goal,
    Plan,
    PlanSummary,
    Profile,
    Session,
    SessionStatus,
)
from cycleplan.services.metabolism import (
    KCAL_PER_KG,
    age_from_birth_date,
    calories_per_hour_cycling,
    classify_plan_type,
    compute_bmr,
    compute_tdee,
)
from cycleplan.services.policy_config import PolicyConfig


logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class PlanGenerator:
    """Builds day-by-day cycling plans while enforcing the safety ceilings."""

    def __init__(
        self,
        max_daily_calorie_goal: float = 1000.0,
        max_daily_hours: float = 4.0,
        adjustment_settings: AutoAdjustmentSettings | None = None,
    ):
        self.max_daily_calorie_goal = max_daily_calorie_goal
        self.max_daily_hours = max_daily_hours
        self.adjustment_settings = adjustment_settings or AutoAdjustmentSettings()

    @classmethod
    def from_settings(cls, settings: Settings, policy: PolicyConfig | None = None) -> "PlanGenerator":
        policy = policy or PolicyConfig.from_settings(settings)
        return cls(
            max_daily_calorie_goal=settings.max_daily_calorie_goal,
            max_daily_hours=settings.max_generated_daily_hours,
            adjustment_settings=AutoAdjustmentSettings(
                max_daily_hours=policy.max_daily_hours,
                grace_period_days=policy.grace_period_days,
                weekly_reset_threshold=policy.weekly_reset_threshold,
            ),
        )

    def generate_plan(
        self,
        profile: Profile,
        goal: Goal,
        account_id: str = "",
        today: date | None = None,
    ) -> Plan:
        """
        Generate a plan with one pending session per calendar day.

        Args:
            profile: Complete body profile (all five fields)
            goal: Weight goal with start and target dates
            account_id: Owner of the plan
            today: Reference date for the age calculation (defaults to today)

        Returns:
            Plan: New active plan; persisting it (and deactivating older
            plans) is the store's job

        Raises:
            ProfileIncomplete: If any profile field is missing
            InvalidGoal: If the goal window is empty or weights are not positive
            UnsafeDeficit: If more than the daily calorie ceiling is needed
            UnsafeDuration: If more than the daily hour ceiling is needed
        """
        missing = profile.missing_fields()
        if missing:
            raise ProfileIncomplete(missing)

        if goal.current_weight <= 0 or goal.target_weight <= 0:
            raise InvalidGoal("Current and target weight must be positive")

        total_days = math.ceil((goal.target_date - goal.start_date).total_seconds() / SECONDS_PER_DAY)
        if total_days < 1:
            raise InvalidGoal(
                "Target date must be after start date",
                start_date=goal.start_date.isoformat(),
                target_date=goal.target_date.isoformat(),
            )

        age = age_from_birth_date(profile.birth_date, today)
        bmr = compute_bmr(profile.weight, profile.height, age, profile.gender)
        tdee = compute_tdee(bmr, profile.activity_level)

        calories_needed = abs(goal.current_weight - goal.target_weight) * KCAL_PER_KG
        daily_calorie_goal = calories_needed / total_days
        if daily_calorie_goal > self.max_daily_calorie_goal:
            logger.info(
                "Rejected plan for account=%s: daily calorie goal %.1f > %.0f",
                account_id,
                daily_calorie_goal,
                self.max_daily_calorie_goal,
            )
            raise UnsafeDeficit(daily_calorie_goal, self.max_daily_calorie_goal)

        calories_per_hour = calories_per_hour_cycling(profile.weight, "moderate")
        daily_cycling_hours = daily_calorie_goal / calories_per_hour
        if daily_cycling_hours > self.max_daily_hours:
            logger.info(
                "Rejected plan for account=%s: %.2f h/day > %.1f",
                account_id,
                daily_cycling_hours,
                self.max_daily_hours,
            )
            raise UnsafeDuration(daily_cycling_hours, self.max_daily_hours)

        sessions = [
            Session(date=day, planned_hours=daily_cycling_hours, status=SessionStatus.PENDING)
            for day in _calendar_days(goal.start_date, goal.target_date)
        ]

        summary = PlanSummary(
            bmr=bmr,
            tdee=tdee,
            daily_calorie_goal=daily_calorie_goal,
            daily_cycling_hours=daily_cycling_hours,
            total_cycling_hours=daily_cycling_hours * total_days,
            total_calories_to_burn=calories_needed,
            total_plan_days=total_days,
            plan_type=classify_plan_type(daily_cycling_hours),
        )

        logger.info(
            "Generated plan for account=%s: days=%d, sessions=%d, kcal/day=%.1f, hours/day=%.3f (%s)",
            account_id,
            total_days,
            len(sessions),
            daily_calorie_goal,
            daily_cycling_hours,
            summary.plan_type,
        )

        return Plan(
            account_id=account_id,
            goal=goal,
            total_days=total_days,
            sessions=sessions,
            plan_summary=summary,
            auto_adjustment_settings=AutoAdjustmentSettings(
                enabled=self.adjustment_settings.enabled,
                max_daily_hours=self.adjustment_settings.max_daily_hours,
                grace_period_days=self.adjustment_settings.grace_period_days,
                weekly_reset_threshold=self.adjustment_settings.weekly_reset_threshold,
            ),
        )

    @staticmethod
    def reset_goal(plan: Plan, today: date) -> Goal:
        """Goal for a fresh plan anchored to ``today`` that keeps the original target date."""

        if today >= plan.goal.target_date:
            raise InvalidGoal(
                "Original target date has passed; choose a new target date",
                target_date=plan.goal.target_date.isoformat(),
            )
        return Goal(
            current_weight=plan.goal.current_weight,
            target_weight=plan.goal.target_weight,
            start_date=today,
            target_date=plan.goal.target_date,
        )


def _calendar_days(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
