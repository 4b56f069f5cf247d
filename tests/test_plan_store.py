"""Tests for the SQLAlchemy plan store."""
from __future__ import annotations

from datetime import date, datetime
from typing import get_args

import pytest
from sqlalchemy import Date

from cycleplan.errors import PlanConflict, PlanNotFound
from cycleplan.models.database_models import PlanSession
from cycleplan.models.plan import AdjustmentRecord, Profile, SessionStatus
from cycleplan.services import session_tracker
from cycleplan.services.plan_store import SessionScheduleStore


def test_missing_profile_loads_empty(db_session):
    profile = SessionScheduleStore(db_session).load_profile("nobody")

    assert profile == Profile()
    assert not profile.is_complete


def test_profile_round_trip(db_session, profile):
    store = SessionScheduleStore(db_session)

    store.save_profile("rider-1", profile)
    store.save_profile("rider-1", Profile(**{**profile.__dict__, "weight": 68.0}))

    loaded = store.load_profile("rider-1")
    assert loaded.weight == 68.0
    assert loaded.birth_date == profile.birth_date
    assert loaded.is_complete


def test_create_plan_assigns_ids_and_version(db_session, make_plan):
    store = SessionScheduleStore(db_session)

    created = store.create_plan(make_plan())

    assert created.id is not None
    assert created.version == 1
    assert all(s.id is not None for s in created.sessions)
    assert store.load_active_plan("rider-1").sessions == created.sessions


def test_new_plan_deactivates_previous_one(db_session, make_plan):
    store = SessionScheduleStore(db_session)
    first = store.create_plan(make_plan())

    second = store.create_plan(make_plan(start=date(2025, 2, 1)))

    assert store.load_plan(first.id).is_active is False
    assert store.load_active_plan("rider-1").id == second.id
    assert store.active_plan_refs() == [(second.id, "rider-1")]


def test_save_plan_persists_sessions_and_history(db_session, make_plan):
    store = SessionScheduleStore(db_session)
    plan = store.create_plan(make_plan())

    plan.sessions[0].status = SessionStatus.MISSED
    plan.sessions[0].missed_hours = 1.0
    plan.sessions[1].adjusted_hours = 0.2
    plan.missed_count = 1
    plan.total_missed_hours = 1.0
    plan.record_adjustment(
        AdjustmentRecord(
            timestamp=datetime(2025, 1, 2, 6, 0),
            missed_hours=1.0,
            new_daily_target=1.1,
            reason="missed_day",
            method="weighted_spread",
        )
    )
    saved = store.save_plan(plan)

    reloaded = store.load_plan(plan.id)
    assert saved.version == 2
    assert reloaded.missed_count == 1
    assert reloaded.sessions[0].status == SessionStatus.MISSED
    assert reloaded.sessions[1].adjusted_hours == pytest.approx(0.2)
    assert len(reloaded.adjustment_history) == 1

    store.save_plan(reloaded)
    assert len(store.load_plan(plan.id).adjustment_history) == 1


def test_session_only_edit_bumps_version(db_session, make_plan):
    store = SessionScheduleStore(db_session)
    plan = store.create_plan(make_plan())

    plan.sessions[2].completed_hours = 0.5
    saved = store.save_plan(plan)

    assert saved.version == plan.version + 1


def test_stale_save_raises_conflict(db_session, make_plan):
    store = SessionScheduleStore(db_session)
    plan = store.create_plan(make_plan())
    stale = store.load_plan(plan.id)

    store.save_plan(plan)

    with pytest.raises(PlanConflict):
        store.save_plan(stale)


def test_resuming_plan_deactivates_the_other(db_session, make_plan):
    store = SessionScheduleStore(db_session)
    first = store.create_plan(make_plan())
    second = store.create_plan(make_plan(start=date(2025, 2, 1)))

    paused = store.load_plan(first.id)
    paused.is_active = True
    store.save_plan(paused)

    assert store.load_active_plan("rider-1").id == first.id
    assert store.load_plan(second.id).is_active is False


def test_rescheduled_session_keeps_original_date(db_session, make_plan):
    store = SessionScheduleStore(db_session)
    plan = store.create_plan(make_plan(days=3))
    session_tracker.reschedule(plan, date(2025, 1, 1), date(2025, 1, 8), today=date(2025, 1, 1), reason="rain")
    store.save_plan(plan)

    reloaded = store.load_plan(plan.id)
    moved = reloaded.sessions[-1]
    assert moved.date == date(2025, 1, 8)
    assert moved.reschedule_info.original_date == date(2025, 1, 1)
    assert moved.reschedule_info.reason == "rain"


def test_deactivate_and_missing_plan(db_session, make_plan):
    store = SessionScheduleStore(db_session)
    plan = store.create_plan(make_plan())

    store.deactivate_plan(plan.id)

    assert store.load_active_plan("rider-1") is None
    assert store.load_latest_plan("rider-1").id == plan.id
    with pytest.raises(PlanNotFound):
        store.load_plan(plan.id + 1000)


def test_reschedule_column_is_a_nullable_date():
    column = PlanSession.__table__.c.rescheduled_from

    assert isinstance(column.type, Date)
    assert column.nullable is True
    assert get_args(PlanSession.__annotations__["rescheduled_from"]) == (date | None,)
    assert get_args(PlanSession.__annotations__["date"]) == (date,)
