"""Redistribute-versus-reset decisions for plans with missed sessions."""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import date, datetime

from cycleplan.errors import NoPendingSessions, UnsafeRedistribution
from cycleplan.models.plan import AdjustmentRecord, Plan, Session, SessionStatus, utc_now
from cycleplan.services.policy_config import PolicyConfig
from cycleplan.services.redistribution import RedistributionEngine, RedistributionResult


logger = logging.getLogger(__name__)

REASON_MISSED_DAY = "missed_day"
REASON_EMERGENCY = "emergency_catch_up"
METHOD_WEIGHTED_SPREAD = "weighted_spread"

RESET_WEEKLY = "weekly_reset"
RESET_NO_PENDING = "no_pending_sessions"
RESET_UNSAFE = "unsafe_redistribution"


@dataclass
class RedistributionApplied:
    plan: Plan
    record: AdjustmentRecord
    original_daily_hours: float
    new_daily_hours: float
    total_missed_hours: float
    remaining_days: int
    adjusted_remaining_days: int
    grace_period_days: int
    result: RedistributionResult

    kind = "redistribute"

    @property
    def unallocated_hours(self) -> float:
        return self.result.unallocated_hours


@dataclass
class ResetRecommended:
    plan: Plan
    reason: str
    missed_days: int
    total_missed_hours: float
    remaining_days: int
    original_target_date: date
    required_daily_hours: float | None = None

    kind = "reset"


@dataclass
class NoAdjustmentNeeded:
    plan: Plan
    message: str = "No outstanding missed hours"

    kind = "none"


AdjustmentOutcome = RedistributionApplied | ResetRecommended | NoAdjustmentNeeded


def _today(now: datetime | date) -> date:
    return now.date() if isinstance(now, datetime) else now


def outstanding_deficit(plan: Plan) -> float:
    """
    Missed hours not yet made good.

    Completed sessions that were carrying a positive adjustment and were ridden
    beyond their planned hours have already absorbed part of the deficit.
    """
    recovered = 0.0
    for session in plan.sessions_with_status(SessionStatus.COMPLETED):
        if session.adjusted_hours > 0:
            extra = max(0.0, session.completed_hours - session.planned_hours)
            recovered += min(session.adjusted_hours, extra)
    return max(0.0, plan.total_missed_hours - recovered)


def in_progress_adjustment(plan: Plan, today: date) -> float:
    """Positive adjustment still carried by sessions being ridden today or later."""
    return sum(
        max(0.0, s.adjusted_hours)
        for s in plan.sessions_with_status(SessionStatus.IN_PROGRESS)
        if s.date >= today
    )


def _spreadable_deficit(plan: Plan, today: date) -> float:
    # In-progress sessions sit outside the recompute window but keep their share.
    return max(0.0, outstanding_deficit(plan) - in_progress_adjustment(plan, today))


class AdjustmentPolicy:
    """Decides whether a plan gets its missed hours spread out or a reset suggestion."""

    def __init__(
        self,
        config: PolicyConfig | None = None,
        engine: RedistributionEngine | None = None,
    ):
        self.config = config or PolicyConfig()
        self.engine = engine or RedistributionEngine()

    def _thresholds(self, plan: Plan) -> tuple[float, int, int]:
        settings = plan.auto_adjustment_settings
        if settings is None:
            return (
                self.config.max_daily_hours,
                self.config.grace_period_days,
                self.config.weekly_reset_threshold,
            )
        return settings.max_daily_hours, settings.grace_period_days, settings.weekly_reset_threshold

    def _reset(self, plan: Plan, today: date, reason: str, required: float | None = None) -> ResetRecommended:
        remaining_days = max(0, (plan.goal.target_date - today).days)
        logger.info(
            "Recommending reset for plan %s (account=%s): reason=%s, missed=%d, missed_hours=%.2f",
            plan.id,
            plan.account_id,
            reason,
            plan.missed_count,
            plan.total_missed_hours,
        )
        return ResetRecommended(
            plan=plan,
            reason=reason,
            missed_days=plan.missed_count,
            total_missed_hours=plan.total_missed_hours,
            remaining_days=remaining_days,
            original_target_date=plan.goal.target_date,
            required_daily_hours=required,
        )

    def recommend_reset(self, plan: Plan, now: datetime | date, reason: str, required: float | None = None) -> ResetRecommended:
        return self._reset(plan, _today(now), reason, required)

    def adjust(
        self,
        plan: Plan,
        now: datetime | date,
        calories_per_hour: float | None = None,
    ) -> AdjustmentOutcome:
        """
        Repair the schedule or recommend a reset.

        The input plan is left untouched; the outcome carries the updated copy.

        Args:
            plan: Plan whose counters reflect the latest detection pass
            now: Current wall-clock time
            calories_per_hour: Burn rate used to report calorie targets (optional)

        Returns:
            RedistributionApplied, ResetRecommended or NoAdjustmentNeeded

        Raises:
            UnsafeRedistribution: If the repaired daily target would exceed
                max_daily_hours. Nothing is capped silently.
        """
        today = _today(now)
        plan = copy.deepcopy(plan)
        _, _, reset_threshold = self._thresholds(plan)

        if plan.missed_count >= reset_threshold:
            return self._reset(plan, today, RESET_WEEKLY)

        try:
            return self._redistribute(plan, today, calories_per_hour)
        except NoPendingSessions:
            return self._reset(plan, today, RESET_NO_PENDING)

    def _remaining_sessions(self, plan: Plan, today: date) -> list[Session]:
        remaining = plan.pending_from(today)
        if not remaining:
            raise NoPendingSessions()
        return remaining

    def _redistribute(
        self,
        plan: Plan,
        today: date,
        calories_per_hour: float | None,
    ) -> AdjustmentOutcome:
        max_daily_hours, grace_period_days, _ = self._thresholds(plan)
        remaining = self._remaining_sessions(plan, today)

        deficit = _spreadable_deficit(plan, today)
        if deficit <= self.engine.epsilon:
            return NoAdjustmentNeeded(plan=plan)

        remaining_days = len(remaining)
        # Baseline is the planned hours, never a previously adjusted target.
        original_daily_hours = sum(s.planned_hours for s in remaining) / remaining_days
        adjusted_remaining_days = max(1, remaining_days - grace_period_days)
        new_daily_hours = (original_daily_hours * remaining_days + deficit) / adjusted_remaining_days

        if new_daily_hours > max_daily_hours:
            logger.warning(
                "Unsafe redistribution for plan %s: %.2f h/day > %.2f",
                plan.id,
                new_daily_hours,
                max_daily_hours,
            )
            raise UnsafeRedistribution(new_daily_hours, max_daily_hours)

        result = self.engine.redistribute(deficit, remaining)
        self.engine.apply(result, remaining)

        record = AdjustmentRecord(
            timestamp=utc_now(),
            missed_hours=deficit,
            new_daily_target=new_daily_hours,
            reason=REASON_MISSED_DAY,
            method=METHOD_WEIGHTED_SPREAD,
            new_daily_calories=new_daily_hours * calories_per_hour if calories_per_hour else None,
        )
        plan.record_adjustment(record)
        plan.plan_summary.daily_cycling_hours = new_daily_hours

        logger.info(
            "Redistributed %.2f of %.2f missed hours over %d sessions for plan %s (target %.2f -> %.2f h/day)",
            result.allocated_hours,
            deficit,
            remaining_days,
            plan.id,
            original_daily_hours,
            new_daily_hours,
        )
        return RedistributionApplied(
            plan=plan,
            record=record,
            original_daily_hours=original_daily_hours,
            new_daily_hours=new_daily_hours,
            total_missed_hours=deficit,
            remaining_days=remaining_days,
            adjusted_remaining_days=adjusted_remaining_days,
            grace_period_days=grace_period_days,
            result=result,
        )

    def emergency_catch_up(
        self,
        plan: Plan,
        now: datetime | date,
        calories_per_hour: float | None = None,
    ) -> RedistributionApplied:
        """
        User-triggered spread of the whole deficit over every pending session.

        Ignores the grace period and the reset threshold; the engine caps still
        hold, so unplaceable hours are reported as unallocated.

        Raises:
            NoPendingSessions: If nothing is left to absorb the deficit
        """
        today = _today(now)
        plan = copy.deepcopy(plan)
        remaining = self._remaining_sessions(plan, today)
        deficit = _spreadable_deficit(plan, today)

        result = self.engine.redistribute(deficit, remaining)
        self.engine.apply(result, remaining)

        original_daily_hours = sum(s.planned_hours for s in remaining) / len(remaining)
        new_daily_hours = sum(s.required_hours for s in remaining) / len(remaining)
        record = AdjustmentRecord(
            timestamp=utc_now(),
            missed_hours=deficit,
            new_daily_target=new_daily_hours,
            reason=REASON_EMERGENCY,
            method=METHOD_WEIGHTED_SPREAD,
            new_daily_calories=new_daily_hours * calories_per_hour if calories_per_hour else None,
        )
        plan.record_adjustment(record)
        plan.plan_summary.daily_cycling_hours = new_daily_hours
        plan.emergency_catch_up = True

        logger.info(
            "Emergency catch-up for plan %s: %.2f of %.2f hours placed over %d sessions",
            plan.id,
            result.allocated_hours,
            deficit,
            len(remaining),
        )
        return RedistributionApplied(
            plan=plan,
            record=record,
            original_daily_hours=original_daily_hours,
            new_daily_hours=new_daily_hours,
            total_missed_hours=deficit,
            remaining_days=len(remaining),
            adjusted_remaining_days=len(remaining),
            grace_period_days=0,
            result=result,
        )

    def evaluate_auto_pause(self, plan: Plan, new_missed_count: int) -> bool:
        """
        Deactivate the plan when new misses leave it at or above the pause threshold.

        A plan the user resumed stays active until a later pass detects new misses.
        """
        threshold = self.config.auto_pause_threshold
        if plan.is_active and new_missed_count > 0 and plan.missed_count >= threshold:
            plan.is_active = False
            logger.info(
                "Auto-paused plan %s for account=%s after %d missed sessions",
                plan.id,
                plan.account_id,
                plan.missed_count,
            )
            return True
        return False

    def can_edit_plan(self, plan: Plan) -> bool:
        return plan.missed_count >= self.config.edit_unlock_threshold
