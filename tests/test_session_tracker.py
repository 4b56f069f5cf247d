"""Tests for the session state machine."""
from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from cycleplan.errors import InvalidGoal, InvalidSessionTransition, SessionNotFound
from cycleplan.models.plan import SessionStatus
from cycleplan.services import session_tracker


DAY1 = date(2025, 1, 1)


def test_transition_table():
    assert session_tracker.can_transition(SessionStatus.PENDING, SessionStatus.MISSED)
    assert session_tracker.can_transition(SessionStatus.MISSED, SessionStatus.COMPLETED)
    assert session_tracker.can_transition(SessionStatus.RESCHEDULED, SessionStatus.PENDING)
    assert not session_tracker.can_transition(SessionStatus.COMPLETED, SessionStatus.PENDING)
    assert not session_tracker.can_transition(SessionStatus.MISSED, SessionStatus.PENDING)
    assert not session_tracker.can_transition(SessionStatus.IN_PROGRESS, SessionStatus.MISSED)


def test_partial_progress_moves_to_in_progress(make_plan):
    plan = make_plan()

    session = session_tracker.record_progress(plan, DAY1, 0.4, weight=70)

    assert session.status == SessionStatus.IN_PROGRESS
    assert session.completed_hours == pytest.approx(0.4)
    assert session.calories_burned == pytest.approx(0.4 * 588)


def test_progress_reaching_target_completes_session(make_plan):
    plan = make_plan()
    done_at = datetime(2025, 1, 1, 18, 0)

    session_tracker.record_progress(plan, DAY1, 0.5, weight=70)
    session = session_tracker.record_progress(plan, DAY1, 0.5, weight=70, completed_at=done_at)

    assert session.status == SessionStatus.COMPLETED
    assert session.completed_at == done_at
    assert session.calories_burned == pytest.approx(588)


def test_progress_target_includes_adjustment(make_plan):
    plan = make_plan()
    plan.sessions[0].adjusted_hours = 0.25

    session = session_tracker.record_progress(plan, DAY1, 1.0, weight=70)
    assert session.status == SessionStatus.IN_PROGRESS

    session = session_tracker.record_progress(plan, DAY1, 0.25, weight=70)
    assert session.status == SessionStatus.COMPLETED


def test_progress_on_completed_session_is_rejected(make_plan):
    plan = make_plan(statuses={0: SessionStatus.COMPLETED})

    with pytest.raises(InvalidSessionTransition):
        session_tracker.record_progress(plan, DAY1, 0.5, weight=70)


def test_complete_session_is_idempotent(make_plan):
    plan = make_plan()

    session, changed = session_tracker.complete_session(plan, DAY1, weight=70)
    assert changed is True
    assert session.completed_hours == pytest.approx(1.0)
    first_completed_at = session.completed_at

    session, changed = session_tracker.complete_session(plan, DAY1, weight=70, hours=2.0)
    assert changed is False
    assert session.completed_hours == pytest.approx(1.0)
    assert session.completed_at == first_completed_at


def test_complete_missed_session_requires_catch_up(make_plan):
    plan = make_plan(statuses={0: SessionStatus.MISSED})

    with pytest.raises(InvalidSessionTransition):
        session_tracker.complete_session(plan, DAY1, weight=70)


def test_catch_up_completes_missed_session(make_plan):
    plan = make_plan(statuses={0: SessionStatus.MISSED})

    session = session_tracker.catch_up(plan, DAY1, 0.6, weight=70)

    assert session.status == SessionStatus.COMPLETED
    assert session.completed_hours == pytest.approx(0.6)
    assert session.missed_hours == pytest.approx(0.4)
    assert plan.missed_count == 0
    assert plan.total_missed_hours == pytest.approx(0.4)


def test_catch_up_on_pending_session_is_rejected(make_plan):
    plan = make_plan()

    with pytest.raises(InvalidSessionTransition):
        session_tracker.catch_up(plan, DAY1, 1.0, weight=70)


def test_unknown_date_raises_session_not_found(make_plan):
    plan = make_plan()

    with pytest.raises(SessionNotFound):
        session_tracker.complete_session(plan, date(2030, 1, 1), weight=70)


def test_reschedule_moves_session_to_free_day(make_plan):
    plan = make_plan(days=3)

    session = session_tracker.reschedule(plan, DAY1, date(2025, 1, 5), today=DAY1, reason="travel")

    assert session.status == SessionStatus.PENDING
    assert session.date == date(2025, 1, 5)
    assert session.reschedule_info.original_date == DAY1
    assert session.reschedule_info.reason == "travel"
    assert [s.date for s in plan.sessions] == sorted(s.date for s in plan.sessions)
    assert plan.sessions[-1] is session


def test_reschedule_onto_occupied_day_is_rejected(make_plan):
    plan = make_plan(days=3)

    with pytest.raises(InvalidGoal):
        session_tracker.reschedule(plan, DAY1, date(2025, 1, 2), today=DAY1)


def test_reschedule_into_past_is_rejected(make_plan):
    plan = make_plan(days=3)

    with pytest.raises(InvalidGoal):
        session_tracker.reschedule(plan, date(2025, 1, 3), date(2024, 12, 30), today=DAY1)


def test_reschedule_completed_session_is_rejected(make_plan):
    plan = make_plan(days=3, statuses={0: SessionStatus.COMPLETED})

    with pytest.raises(InvalidSessionTransition):
        session_tracker.reschedule(plan, DAY1, date(2025, 1, 9), today=DAY1)


def test_acknowledge_missed_counts_changes(make_plan):
    plan = make_plan(statuses={0: SessionStatus.MISSED, 1: SessionStatus.MISSED})

    assert session_tracker.acknowledge_missed(plan) == 2
    assert session_tracker.acknowledge_missed(plan) == 0
    assert all(s.acknowledged for s in plan.sessions_with_status(SessionStatus.MISSED))


def test_default_completion_time_is_naive_utc(make_plan):
    plan = make_plan()
    before = datetime.now(timezone.utc).replace(tzinfo=None)

    session, _ = session_tracker.complete_session(plan, DAY1, weight=70)

    assert session.completed_at.tzinfo is None
    assert before <= session.completed_at <= datetime.now(timezone.utc).replace(tzinfo=None)
