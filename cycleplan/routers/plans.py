"""API endpoints for cycling plan management."""
from __future__ import annotations

import logging
from dataclasses import asdict, replace
from datetime import date, datetime
from functools import lru_cache
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cycleplan.config import get_settings
from cycleplan.database import get_db
from cycleplan.errors import (
    InvalidGoal,
    InvalidSessionTransition,
    NoPendingSessions,
    PlanConflict,
    PlanNotFound,
    PlanningError,
    ProfileIncomplete,
    SessionNotFound,
    UnsafeDeficit,
    UnsafeDuration,
    UnsafeRedistribution,
)
from cycleplan.models.plan import Goal, Plan
from cycleplan.models.schemas import (
    AdjustmentResponse,
    CatchUpRequest,
    CheckInResponse,
    CompletionUpdate,
    PlanGenerateRequest,
    PlanResponse,
    PlanStatusResponse,
    ProfileResponse,
    ProfileUpdate,
    ProgressUpdate,
    RescheduleRequest,
    SessionResponse,
)
from cycleplan.services import session_tracker
from cycleplan.services.adjustment_policy import (
    AdjustmentOutcome,
    AdjustmentPolicy,
    NoAdjustmentNeeded,
    RedistributionApplied,
)
from cycleplan.services.check_in import account_calories_per_hour, run_check_in
from cycleplan.services.missed_session_detector import (
    detect_missed,
    missed_session_summary,
    plan_status,
)
from cycleplan.services.plan_generator import PlanGenerator
from cycleplan.services.plan_store import SessionScheduleStore
from cycleplan.services.policy_config import PolicyConfig
from cycleplan.services.redistribution import RedistributionEngine


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/accounts/{account_id}", tags=["cycling_plans"])

_STATUS_BY_ERROR: dict[type[PlanningError], int] = {
    ProfileIncomplete: 422,
    InvalidGoal: 400,
    UnsafeDeficit: 422,
    UnsafeDuration: 422,
    UnsafeRedistribution: 422,
    NoPendingSessions: 409,
    InvalidSessionTransition: 409,
    PlanConflict: 409,
    SessionNotFound: 404,
    PlanNotFound: 404,
}


def _http_error(exc: PlanningError) -> HTTPException:
    return HTTPException(status_code=_STATUS_BY_ERROR.get(type(exc), 400), detail=exc.to_dict())


@lru_cache()
def get_policy() -> AdjustmentPolicy:
    settings = get_settings()
    return AdjustmentPolicy(
        config=PolicyConfig.from_settings(settings),
        engine=RedistributionEngine.from_settings(settings),
    )


@lru_cache()
def get_generator() -> PlanGenerator:
    settings = get_settings()
    return PlanGenerator.from_settings(settings, get_policy().config)


def get_now() -> datetime:
    """Wall clock used by detection; overridden in tests."""
    return datetime.now()


DbDep = Annotated[Session, Depends(get_db)]
PolicyDep = Annotated[AdjustmentPolicy, Depends(get_policy)]
NowDep = Annotated[datetime, Depends(get_now)]


def _current_plan(store: SessionScheduleStore, account_id: str) -> Plan:
    plan = store.load_active_plan(account_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="No active cycling plan found")
    return plan


def _owned_plan(store: SessionScheduleStore, account_id: str, plan_id: int) -> Plan:
    plan = store.load_plan(plan_id)
    if plan.account_id != account_id:
        raise HTTPException(status_code=404, detail=f"Cycling plan {plan_id} not found")
    return plan


def _rider_weight(store: SessionScheduleStore, plan: Plan) -> float:
    return store.load_profile(plan.account_id).weight or plan.goal.current_weight


def _adjustment_response(outcome: AdjustmentOutcome) -> AdjustmentResponse:
    details: dict[str, Any]
    if isinstance(outcome, RedistributionApplied):
        details = {
            "original_daily_hours": outcome.original_daily_hours,
            "new_daily_hours": outcome.new_daily_hours,
            "total_missed_hours": outcome.total_missed_hours,
            "remaining_days": outcome.remaining_days,
            "adjusted_remaining_days": outcome.adjusted_remaining_days,
            "grace_period_days": outcome.grace_period_days,
            "allocated_hours": outcome.result.allocated_hours,
            "unallocated_hours": outcome.result.unallocated_hours,
            "capacity_exhausted": outcome.result.capacity_exhausted,
            "iteration_limit_hit": outcome.result.iteration_limit_hit,
            "redistribution": {d.isoformat(): h for d, h in outcome.result.redistribution_map.items()},
        }
        message = "Plan adjusted. Missed hours redistributed across remaining sessions."
        if outcome.result.unallocated_hours > 0:
            message += f" {outcome.result.unallocated_hours:.2f} hours could not be placed."
    elif isinstance(outcome, NoAdjustmentNeeded):
        details = {}
        message = outcome.message
    else:
        details = {
            "reason": outcome.reason,
            "missed_days": outcome.missed_days,
            "total_missed_hours": outcome.total_missed_hours,
            "remaining_days": outcome.remaining_days,
            "original_target_date": outcome.original_target_date.isoformat(),
            "required_daily_hours": outcome.required_daily_hours,
        }
        message = "Too many missed sessions to repair. We recommend creating a fresh cycling plan."
    return AdjustmentResponse(
        kind=outcome.kind,
        message=message,
        details=details,
        plan=PlanResponse.model_validate(outcome.plan),
    )


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(account_id: str, payload: ProfileUpdate, db: DbDep):
    """Store the body profile used for plan generation; omitted fields keep their stored value."""
    store = SessionScheduleStore(db)
    existing = store.load_profile(account_id)
    profile = store.save_profile(account_id, replace(existing, **payload.model_dump(exclude_unset=True)))
    return ProfileResponse(
        account_id=account_id,
        is_complete=profile.is_complete,
        missing_fields=profile.missing_fields(),
        **asdict(profile),
    )


@router.post("/plans/generate", response_model=PlanResponse, status_code=201)
async def generate_plan(
    account_id: str,
    plan_request: PlanGenerateRequest,
    db: DbDep,
    generator: Annotated[PlanGenerator, Depends(get_generator)],
    now: NowDep,
):
    """
    Generate a new cycling plan and make it the account's only active plan.

    Returns:
        PlanResponse: Generated plan with all sessions
    """
    if plan_request.target_date <= plan_request.start_date:
        raise HTTPException(status_code=400, detail="Target date must be after start date")

    try:
        store = SessionScheduleStore(db)
        profile = store.load_profile(account_id)
        goal = Goal(**plan_request.model_dump())
        plan = generator.generate_plan(profile, goal, account_id=account_id, today=now.date())
        created = store.create_plan(plan)
        db.commit()
        return PlanResponse.model_validate(created)
    except PlanningError as exc:
        raise _http_error(exc) from exc
    except Exception as e:
        logger.exception("Failed to generate cycling plan for account=%s", account_id)
        raise HTTPException(status_code=500, detail=f"Failed to generate cycling plan: {str(e)}")


@router.get("/plans/current", response_model=PlanResponse)
async def get_current_plan(account_id: str, db: DbDep):
    """Get the currently active plan."""
    return PlanResponse.model_validate(_current_plan(SessionScheduleStore(db), account_id))


@router.get("/plans/current/status", response_model=PlanStatusResponse)
async def get_plan_status(account_id: str, db: DbDep, now: NowDep):
    """Status snapshot as of now; stale days count as missed without being saved."""
    plan = _current_plan(SessionScheduleStore(db), account_id)
    return PlanStatusResponse.model_validate(plan_status(detect_missed(plan, now).plan, now))


@router.post("/plans/current/check-in", response_model=CheckInResponse)
async def check_in(account_id: str, db: DbDep, policy: PolicyDep, now: NowDep):
    """Detect missed days and repair or flag the plan."""
    try:
        report = run_check_in(
            db,
            account_id,
            now,
            policy,
            max_retries=get_settings().check_in_max_retries,
        )
    except PlanningError as exc:
        raise _http_error(exc) from exc
    if report is None:
        raise HTTPException(status_code=404, detail="No active cycling plan found")
    db.commit()

    return CheckInResponse(
        new_missed=[SessionResponse.model_validate(s) for s in report.detection.newly_missed],
        status=PlanStatusResponse.model_validate(report.status),
        adjustment=_adjustment_response(report.outcome) if report.outcome else None,
        paused=report.paused,
        alerts=[a.__dict__ for a in report.alerts],
    )


@router.post("/plans/current/adjust", response_model=AdjustmentResponse)
async def adjust_plan(account_id: str, db: DbDep, policy: PolicyDep, now: NowDep):
    """Redistribute outstanding missed hours or recommend a reset."""
    store = SessionScheduleStore(db)
    plan = _current_plan(store, account_id)
    try:
        detection = detect_missed(plan, now)
        outcome = policy.adjust(detection.plan, now, account_calories_per_hour(store, account_id))
        policy.evaluate_auto_pause(outcome.plan, detection.new_missed_count)
        outcome.plan = store.save_plan(outcome.plan)
        db.commit()
    except PlanningError as exc:
        raise _http_error(exc) from exc
    return _adjustment_response(outcome)


@router.post("/plans/current/emergency-catch-up", response_model=AdjustmentResponse)
async def emergency_catch_up(account_id: str, db: DbDep, policy: PolicyDep, now: NowDep):
    """Spread every outstanding missed hour over all pending sessions."""
    store = SessionScheduleStore(db)
    plan = _current_plan(store, account_id)
    try:
        detection = detect_missed(plan, now)
        outcome = policy.emergency_catch_up(detection.plan, now, account_calories_per_hour(store, account_id))
        policy.evaluate_auto_pause(outcome.plan, detection.new_missed_count)
        outcome.plan = store.save_plan(outcome.plan)
        db.commit()
    except PlanningError as exc:
        raise _http_error(exc) from exc
    return _adjustment_response(outcome)


@router.post("/plans/current/reset", response_model=PlanResponse, status_code=201)
async def reset_plan(
    account_id: str,
    db: DbDep,
    generator: Annotated[PlanGenerator, Depends(get_generator)],
    now: NowDep,
):
    """Replace the current plan with a fresh one from today to the original target date."""
    store = SessionScheduleStore(db)
    plan = store.load_active_plan(account_id) or store.load_latest_plan(account_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="No cycling plan to reset")
    try:
        goal = generator.reset_goal(plan, now.date())
        fresh = generator.generate_plan(store.load_profile(account_id), goal, account_id=account_id, today=now.date())
        created = store.create_plan(fresh)
        db.commit()
    except PlanningError as exc:
        raise _http_error(exc) from exc
    logger.info("Reset plan %s for account=%s into plan %s", plan.id, account_id, created.id)
    return PlanResponse.model_validate(created)


@router.get("/plans/current/missed")
async def get_missed_sessions(account_id: str, db: DbDep, now: NowDep) -> dict:
    """Missed sessions with day numbers and summary counters."""
    plan = _current_plan(SessionScheduleStore(db), account_id)
    return missed_session_summary(detect_missed(plan, now).plan, now)


@router.post("/plans/current/acknowledge-missed")
async def acknowledge_missed(account_id: str, db: DbDep) -> dict:
    store = SessionScheduleStore(db)
    plan = _current_plan(store, account_id)
    changed = session_tracker.acknowledge_missed(plan)
    try:
        store.save_plan(plan)
    except PlanningError as exc:
        raise _http_error(exc) from exc
    return {"acknowledged": changed}


@router.get("/plans/current/can-edit")
async def can_edit_plan(account_id: str, db: DbDep, policy: PolicyDep) -> dict:
    """Editing unlocks once enough sessions were missed."""
    plan = _current_plan(SessionScheduleStore(db), account_id)
    return {
        "can_edit": policy.can_edit_plan(plan),
        "missed_count": plan.missed_count,
        "threshold": policy.config.edit_unlock_threshold,
    }


@router.put("/plans/current/sessions/{session_date}/progress", response_model=SessionResponse)
async def record_progress(account_id: str, session_date: date, progress: ProgressUpdate, db: DbDep):
    """Add partially ridden hours; completes the day once the target is met."""
    store = SessionScheduleStore(db)
    plan = _current_plan(store, account_id)
    try:
        session = session_tracker.record_progress(
            plan, session_date, progress.hours, _rider_weight(store, plan), progress.completed_at
        )
        store.save_plan(plan)
    except PlanningError as exc:
        raise _http_error(exc) from exc
    return SessionResponse.model_validate(session)


@router.put("/plans/current/sessions/{session_date}/complete", response_model=SessionResponse)
async def complete_session(account_id: str, session_date: date, completion: CompletionUpdate, db: DbDep):
    """Mark a day as complete; repeating the call is a no-op."""
    store = SessionScheduleStore(db)
    plan = _current_plan(store, account_id)
    try:
        session, changed = session_tracker.complete_session(
            plan, session_date, _rider_weight(store, plan), completion.hours, completion.completed_at
        )
        if changed:
            store.save_plan(plan)
    except PlanningError as exc:
        raise _http_error(exc) from exc
    return SessionResponse.model_validate(session)


@router.put("/plans/current/sessions/{session_date}/catch-up", response_model=SessionResponse)
async def catch_up_session(account_id: str, session_date: date, payload: CatchUpRequest, db: DbDep):
    """Complete a missed day after the fact."""
    store = SessionScheduleStore(db)
    plan = _current_plan(store, account_id)
    try:
        session = session_tracker.catch_up(
            plan, session_date, payload.hours, _rider_weight(store, plan), payload.completed_at
        )
        store.save_plan(plan)
    except PlanningError as exc:
        raise _http_error(exc) from exc
    return SessionResponse.model_validate(session)


@router.put("/plans/current/sessions/{session_date}/reschedule", response_model=SessionResponse)
async def reschedule_session(
    account_id: str,
    session_date: date,
    payload: RescheduleRequest,
    db: DbDep,
    now: NowDep,
):
    """Move a pending day to a free date."""
    store = SessionScheduleStore(db)
    plan = _current_plan(store, account_id)
    try:
        session = session_tracker.reschedule(plan, session_date, payload.new_date, now.date(), payload.reason)
        store.save_plan(plan)
    except PlanningError as exc:
        raise _http_error(exc) from exc
    return SessionResponse.model_validate(session)


@router.get("/plans/{plan_id}", response_model=PlanResponse)
async def get_plan_by_id(account_id: str, plan_id: int, db: DbDep):
    try:
        return PlanResponse.model_validate(_owned_plan(SessionScheduleStore(db), account_id, plan_id))
    except PlanningError as exc:
        raise _http_error(exc) from exc


@router.post("/plans/{plan_id}/resume", response_model=PlanResponse)
async def resume_plan(account_id: str, plan_id: int, db: DbDep):
    """Re-activate a paused plan; any other active plan is deactivated."""
    store = SessionScheduleStore(db)
    try:
        plan = _owned_plan(store, account_id, plan_id)
        plan.is_active = True
        resumed = store.save_plan(plan)
    except PlanningError as exc:
        raise _http_error(exc) from exc
    logger.info("Resumed cycling plan: id=%s", plan_id)
    return PlanResponse.model_validate(resumed)


@router.delete("/plans/{plan_id}", status_code=200)
async def deactivate_plan(account_id: str, plan_id: int, db: DbDep):
    """Deactivate a plan (soft delete)."""
    store = SessionScheduleStore(db)
    try:
        _owned_plan(store, account_id, plan_id)
        store.deactivate_plan(plan_id)
    except PlanningError as exc:
        raise _http_error(exc) from exc
    return {"message": f"Cycling plan {plan_id} deactivated successfully"}
