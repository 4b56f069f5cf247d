"""Session state machine: progress, completion, catch-up and reschedule."""
from __future__ import annotations

import logging
from datetime import date, datetime

from cycleplan.errors import InvalidGoal, InvalidSessionTransition, SessionNotFound
from cycleplan.models.plan import Plan, RescheduleInfo, Session, SessionStatus, utc_now
from cycleplan.services.metabolism import calories_for_hours
from cycleplan.services.missed_session_detector import recompute_counters


logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.PENDING: frozenset(
        {
            SessionStatus.COMPLETED,
            SessionStatus.MISSED,
            SessionStatus.IN_PROGRESS,
            SessionStatus.RESCHEDULED,
        }
    ),
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.COMPLETED}),
    # Explicit catch-up only
    SessionStatus.MISSED: frozenset({SessionStatus.COMPLETED}),
    SessionStatus.RESCHEDULED: frozenset({SessionStatus.PENDING}),
    SessionStatus.COMPLETED: frozenset(),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition(session: Session, target: SessionStatus) -> None:
    """Move a session to ``target`` or raise InvalidSessionTransition."""

    current = SessionStatus(session.status)
    if not can_transition(current, target):
        raise InvalidSessionTransition(session.date, current.value, target.value)
    session.status = target


def get_session(plan: Plan, session_date: date) -> Session:
    session = plan.session_for(session_date)
    if session is None:
        raise SessionNotFound(session_date)
    return session


def _mark_completed(session: Session, weight: float, completed_at: datetime | None) -> None:
    transition(session, SessionStatus.COMPLETED)
    session.calories_burned = calories_for_hours(weight, session.completed_hours)
    session.completed_at = completed_at or utc_now()


def record_progress(
    plan: Plan,
    session_date: date,
    hours: float,
    weight: float,
    completed_at: datetime | None = None,
) -> Session:
    """
    Add ridden hours to a session.

    Partial progress moves a pending session to in_progress; the session
    completes once completed hours reach planned + adjusted hours.
    """
    if hours < 0:
        raise ValueError("hours must be non-negative")

    session = get_session(plan, session_date)
    status = SessionStatus(session.status)
    if status not in (SessionStatus.PENDING, SessionStatus.IN_PROGRESS):
        raise InvalidSessionTransition(session.date, status.value, SessionStatus.IN_PROGRESS.value)

    session.completed_hours += hours
    if session.completed_hours >= session.required_hours:
        _mark_completed(session, weight, completed_at)
        logger.info(
            "Session %s completed (%.2f/%.2f h)",
            session.date,
            session.completed_hours,
            session.required_hours,
        )
    else:
        if status == SessionStatus.PENDING:
            transition(session, SessionStatus.IN_PROGRESS)
        session.calories_burned = calories_for_hours(weight, session.completed_hours)
        logger.debug(
            "Session %s in progress (%.2f/%.2f h)",
            session.date,
            session.completed_hours,
            session.required_hours,
        )
    return session


def complete_session(
    plan: Plan,
    session_date: date,
    weight: float,
    hours: float | None = None,
    completed_at: datetime | None = None,
) -> tuple[Session, bool]:
    """
    Mark a day as done.

    Returns:
        (session, changed): ``changed`` is False when the day was already complete
    """
    session = get_session(plan, session_date)
    if session.status == SessionStatus.COMPLETED:
        return session, False
    if session.status == SessionStatus.MISSED:
        raise InvalidSessionTransition(session.date, SessionStatus.MISSED.value, "completed (use catch-up)")

    session.completed_hours = max(session.completed_hours, hours if hours is not None else session.required_hours)
    _mark_completed(session, weight, completed_at)
    logger.info("Marked session %s complete with %.2f h", session.date, session.completed_hours)
    return session, True


def catch_up(
    plan: Plan,
    session_date: date,
    hours: float,
    weight: float,
    completed_at: datetime | None = None,
) -> Session:
    """Explicitly complete a missed session after the fact."""

    if hours <= 0:
        raise ValueError("catch-up hours must be positive")

    session = get_session(plan, session_date)
    if session.status != SessionStatus.MISSED:
        raise InvalidSessionTransition(session.date, SessionStatus(session.status).value, "completed (catch-up)")

    session.completed_hours = hours
    session.missed_hours = max(0.0, session.missed_hours - hours)
    _mark_completed(session, weight, completed_at)
    recompute_counters(plan)
    logger.info("Caught up missed session %s with %.2f h", session.date, hours)
    return session


def reschedule(
    plan: Plan,
    session_date: date,
    new_date: date,
    today: date,
    reason: str | None = None,
) -> Session:
    """
    Move a pending session to a free calendar day.

    The session passes through ``rescheduled`` and re-enters ``pending`` under
    the new date, keeping the original date in ``reschedule_info``.
    """
    session = get_session(plan, session_date)
    if new_date < today:
        raise InvalidGoal("Cannot reschedule a session into the past", new_date=new_date.isoformat())
    if new_date != session_date and plan.session_for(new_date) is not None:
        raise InvalidGoal(
            f"A session already exists on {new_date.isoformat()}",
            new_date=new_date.isoformat(),
        )

    transition(session, SessionStatus.RESCHEDULED)
    original = session.reschedule_info.original_date if session.reschedule_info else session.date
    session.reschedule_info = RescheduleInfo(original_date=original, reason=reason)
    session.date = new_date
    transition(session, SessionStatus.PENDING)

    plan.sessions.sort(key=lambda s: s.date)
    logger.info("Rescheduled session %s -> %s (%s)", session_date, new_date, reason or "no reason")
    return session


def acknowledge_missed(plan: Plan) -> int:
    """Flag every missed session as seen by the user. Returns how many changed."""

    changed = 0
    for session in plan.sessions_with_status(SessionStatus.MISSED):
        if not session.acknowledged:
            session.acknowledged = True
            changed += 1
    return changed
