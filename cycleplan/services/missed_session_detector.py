"""Missed session detection and plan status snapshots."""
from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from cycleplan.models.plan import Plan, Session, SessionStatus


logger = logging.getLogger(__name__)

# Share of elapsed days a user may miss and still count as on track.
ON_TRACK_MISS_RATIO = 0.1


@dataclass
class DetectionResult:
    newly_missed: list[Session]
    plan: Plan

    @property
    def new_missed_count(self) -> int:
        return len(self.newly_missed)

    @property
    def new_missed_hours(self) -> float:
        return sum(s.missed_hours for s in self.newly_missed)


@dataclass
class TodaySession:
    day_number: int
    status: str
    planned_hours: float
    required_hours: float
    completed_hours: float


@dataclass
class PlanStatus:
    day1_date: date | None
    current_date: date
    days_since_start: int
    day1_status: str
    day1_missed: bool
    today_session: TodaySession | None
    completion_rate: int
    total_expected_by_now: int
    completed_sessions: int
    missed_sessions: int
    on_track: bool
    total_sessions: int = 0
    has_active_plan: bool = True


@dataclass
class MissedSessionAlert:
    type: str
    severity: str
    title: str
    message: str
    action: str
    missed_days: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def _today(now: datetime | date) -> date:
    return now.date() if isinstance(now, datetime) else now


def recompute_counters(plan: Plan) -> None:
    """Derive missed_count and total_missed_hours from the session list."""

    missed = plan.sessions_with_status(SessionStatus.MISSED)
    plan.missed_count = len(missed)
    plan.total_missed_hours = sum(s.missed_hours for s in plan.sessions if s.missed_hours > 0)


def detect_missed(plan: Plan, now: datetime | date) -> DetectionResult:
    """
    Flip stale pending sessions to missed.

    A session is stale once its whole calendar day lies before today. The
    input plan is not modified: detection works on a copy, which is returned
    as ``DetectionResult.plan``. Counters are recomputed from the sessions, so
    calling this again with the same ``now`` finds nothing new and changes
    nothing.
    """
    today = _today(now)
    updated = copy.deepcopy(plan)

    newly_missed: list[Session] = []
    for session in updated.sessions:
        if session.date < today and session.status == SessionStatus.PENDING:
            session.status = SessionStatus.MISSED
            session.missed_hours = session.planned_hours
            newly_missed.append(session)
            logger.info(
                "Auto-detected missed session for account=%s: day %d, date %s",
                updated.account_id,
                updated.day_number(session),
                session.date.isoformat(),
            )

    recompute_counters(updated)

    if newly_missed:
        logger.info(
            "Plan %s for account=%s: +%d missed sessions, +%.2f missed hours (totals %d / %.2f h)",
            updated.id,
            updated.account_id,
            len(newly_missed),
            sum(s.missed_hours for s in newly_missed),
            updated.missed_count,
            updated.total_missed_hours,
        )
    return DetectionResult(newly_missed=newly_missed, plan=updated)


def plan_status(plan: Plan, now: datetime | date) -> PlanStatus:
    """Snapshot of where the user stands relative to day 1 of the plan."""

    today = _today(now)
    if not plan.sessions:
        return PlanStatus(
            day1_date=None,
            current_date=today,
            days_since_start=0,
            day1_status="pending",
            day1_missed=False,
            today_session=None,
            completion_rate=0,
            total_expected_by_now=0,
            completed_sessions=0,
            missed_sessions=plan.missed_count,
            on_track=True,
            total_sessions=0,
        )

    day1 = plan.sessions[0]
    raw_days_since_start = (today - day1.date).days
    days_since_start = max(0, raw_days_since_start)

    today_session = None
    session = plan.session_for(today)
    if session is not None:
        today_session = TodaySession(
            day_number=plan.day_number(session),
            status=SessionStatus(session.status).value,
            planned_hours=session.planned_hours,
            required_hours=session.required_hours,
            completed_hours=session.completed_hours,
        )

    completed = len(plan.sessions_with_status(SessionStatus.COMPLETED))
    total_expected = min(raw_days_since_start + 1, len(plan.sessions))
    completion_rate = (completed / total_expected) * 100 if total_expected > 0 else 0

    return PlanStatus(
        day1_date=day1.date,
        current_date=today,
        days_since_start=days_since_start,
        day1_status=SessionStatus(day1.status).value,
        day1_missed=day1.status == SessionStatus.MISSED,
        today_session=today_session,
        completion_rate=round(completion_rate),
        total_expected_by_now=max(0, total_expected),
        completed_sessions=completed,
        missed_sessions=plan.missed_count,
        on_track=plan.missed_count <= math.floor(days_since_start * ON_TRACK_MISS_RATIO),
        total_sessions=len(plan.sessions),
    )


def missed_session_summary(plan: Plan, now: datetime | date) -> dict[str, Any]:
    """Missed sessions with day numbers plus headline counters."""

    today = _today(now)
    status = plan_status(plan, today)
    missed = [
        {
            "date": s.date.isoformat(),
            "day_number": plan.day_number(s),
            "planned_hours": s.planned_hours,
            "missed_hours": s.missed_hours or s.planned_hours,
            "days_ago": (today - s.date).days,
            "acknowledged": s.acknowledged,
        }
        for s in plan.sessions_with_status(SessionStatus.MISSED)
    ]
    return {
        "missed_sessions": missed,
        "summary": {
            "total_missed": plan.missed_count,
            "total_missed_hours": plan.total_missed_hours,
            "day1_missed": status.day1_missed,
            "completion_rate": status.completion_rate,
            "on_track": status.on_track,
        },
    }


def missed_session_alerts(
    plan: Plan,
    detection: DetectionResult,
    reset_threshold: int,
) -> list[MissedSessionAlert]:
    """Build user-facing alerts for unacknowledged missed sessions."""

    alerts: list[MissedSessionAlert] = []
    unacknowledged = [s for s in plan.sessions_with_status(SessionStatus.MISSED) if not s.acknowledged]
    count = len(unacknowledged)
    if count == 0:
        return alerts

    plural = "s" if count > 1 else ""
    alerts.append(
        MissedSessionAlert(
            type="missed_detected",
            severity="warning",
            title=f"{count} Missed Session{plural} Need Attention",
            message=f"You have {count} missed session(s) that need to be addressed. We can adjust your plan.",
            action="adjust_plan",
            missed_days=count,
            extra={"newly_detected": detection.new_missed_count},
        )
    )

    day1 = plan.sessions[0]
    if day1.status == SessionStatus.MISSED and not day1.acknowledged:
        alerts.append(
            MissedSessionAlert(
                type="day1_missed",
                severity="info",
                title="Day 1 was missed",
                message=f"Your cycling plan started on {day1.date.isoformat()} but that day wasn't completed.",
                action="motivational",
            )
        )

    reset = plan.missed_count >= reset_threshold
    alerts.append(
        MissedSessionAlert(
            type="adjustment_needed",
            severity="error" if reset else "warning",
            title="Plan Reset Recommended" if reset else "Plan Adjustment Available",
            message=(
                "You've missed a week or more of sessions. A fresh start might be better."
                if reset
                else "We can redistribute your missed hours across the remaining days."
            ),
            action="reset" if reset else "redistribute",
            missed_days=count,
        )
    )
    return alerts
