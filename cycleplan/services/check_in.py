"""Check-in flow: detect missed days, adjust the plan and persist the result."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session as DbSession

from cycleplan.errors import PlanConflict, UnsafeRedistribution
from cycleplan.models.plan import Plan
from cycleplan.services.adjustment_policy import (
    RESET_UNSAFE,
    AdjustmentOutcome,
    AdjustmentPolicy,
    ResetRecommended,
)
from cycleplan.services.metabolism import calories_per_hour_cycling
from cycleplan.services.missed_session_detector import (
    DetectionResult,
    MissedSessionAlert,
    PlanStatus,
    detect_missed,
    missed_session_alerts,
    plan_status,
)
from cycleplan.services.plan_store import SessionScheduleStore


logger = logging.getLogger(__name__)


@dataclass
class CheckInReport:
    plan: Plan
    detection: DetectionResult
    status: PlanStatus
    outcome: AdjustmentOutcome | None = None
    paused: bool = False
    alerts: list[MissedSessionAlert] = field(default_factory=list)

    @property
    def needs_adjustment(self) -> bool:
        return isinstance(self.outcome, ResetRecommended)


def account_calories_per_hour(store: SessionScheduleStore, account_id: str) -> float | None:
    weight = store.load_profile(account_id).weight
    return calories_per_hour_cycling(weight) if weight else None


def run_check_in(
    db: DbSession,
    account_id: str,
    now: datetime,
    policy: AdjustmentPolicy,
    max_retries: int = 3,
) -> CheckInReport | None:
    """
    Reconcile the account's active plan with the wall clock.

    Newly missed sessions are handed to the adjustment policy. An unsafe
    redistribution turns into a reset recommendation. A stale write is retried
    from a fresh load, which is safe because detection and adjustment are pure
    functions of the stored plan and ``now``.

    Returns:
        CheckInReport, or None when the account has no active plan
    """
    store = SessionScheduleStore(db)
    for attempt in range(1, max_retries + 1):
        plan = store.load_active_plan(account_id)
        if plan is None:
            return None

        detection = detect_missed(plan, now)
        updated = detection.plan
        outcome: AdjustmentOutcome | None = None

        if detection.newly_missed and updated.auto_adjustment_settings.enabled:
            try:
                outcome = policy.adjust(updated, now, account_calories_per_hour(store, account_id))
            except UnsafeRedistribution as exc:
                outcome = policy.recommend_reset(updated, now, RESET_UNSAFE, exc.required_daily_hours)
            updated = outcome.plan

        paused = policy.evaluate_auto_pause(updated, detection.new_missed_count)

        if detection.newly_missed or paused:
            try:
                updated = store.save_plan(updated)
            except PlanConflict:
                db.rollback()
                logger.warning(
                    "Check-in conflict for account=%s (attempt %d/%d) - retrying",
                    account_id,
                    attempt,
                    max_retries,
                )
                continue

        report = CheckInReport(
            plan=updated,
            detection=detection,
            status=plan_status(updated, now),
            outcome=outcome,
            paused=paused,
            alerts=missed_session_alerts(
                updated,
                detection,
                updated.auto_adjustment_settings.weekly_reset_threshold,
            ),
        )
        logger.info(
            "Check-in for account=%s: new_missed=%d, outcome=%s, paused=%s",
            account_id,
            detection.new_missed_count,
            outcome.kind if outcome else "none",
            paused,
        )
        return report

    raise PlanConflict(
        f"Could not check in account {account_id} after {max_retries} attempts",
        account_id=account_id,
    )
