"""Tests for the weighted redistribution engine."""
from __future__ import annotations

from datetime import date, timedelta

import pytest

from cycleplan.models.plan import Session
from cycleplan.services.redistribution import RedistributionEngine


def _sessions(hours: list[float]) -> list[Session]:
    start = date(2025, 1, 1)
    return [Session(date=start + timedelta(days=i), planned_hours=h) for i, h in enumerate(hours)]


def test_even_spread_without_spillover():
    sessions = _sessions([1.0] * 10)

    result = RedistributionEngine().redistribute(2.0, sessions)

    assert all(a.cap == pytest.approx(0.25) for a in result.allocations)
    assert all(a.hours == pytest.approx(0.2) for a in result.allocations)
    assert result.iterations == 0
    assert result.unallocated_hours == 0.0
    assert not result.capacity_exhausted
    assert not result.iteration_limit_hit


def test_redistribute_does_not_touch_sessions():
    sessions = _sessions([1.0] * 4)

    RedistributionEngine().redistribute(0.5, sessions)

    assert all(s.adjusted_hours == 0.0 for s in sessions)


def test_spillover_fills_sessions_with_room():
    # The long day hits the 0.75h session cap; the short days take the rest.
    sessions = _sessions([1.0, 1.0, 3.2])

    result = RedistributionEngine().redistribute(1.24, sessions)

    assert result.iterations >= 1
    assert result.allocated_hours == pytest.approx(1.24)
    assert result.unallocated_hours == 0.0
    for allocation in result.allocations:
        assert allocation.hours <= allocation.cap + 1e-9


def test_capacity_exhaustion_reports_remainder():
    sessions = _sessions([1.0, 1.0])

    result = RedistributionEngine().redistribute(2.0, sessions)

    assert result.allocated_hours == pytest.approx(0.5)
    assert result.unallocated_hours == pytest.approx(1.5)
    assert result.capacity_exhausted is True
    assert result.iteration_limit_hit is False


def test_allocated_plus_unallocated_equals_deficit():
    sessions = _sessions([0.8, 1.2, 2.0, 0.5, 1.0])

    result = RedistributionEngine().redistribute(1.7, sessions)

    assert result.allocated_hours + result.unallocated_hours == pytest.approx(1.7)


def test_hard_ceiling_limits_cap():
    engine = RedistributionEngine(session_cap_hours=2.0, cap_ratio=1.0)

    assert engine.session_cap(3.5) == pytest.approx(0.5)
    assert engine.session_cap(4.5) == 0.0


def test_iteration_limit_is_reported():
    engine = RedistributionEngine(max_iterations=0)
    sessions = _sessions([1.0, 3.2])

    result = engine.redistribute(1.0, sessions)

    assert result.unallocated_hours > 0
    assert result.iteration_limit_hit is True
    assert result.capacity_exhausted is False


def test_no_sessions_or_no_deficit_is_a_noop():
    engine = RedistributionEngine()

    assert engine.redistribute(2.0, []).is_noop
    assert engine.redistribute(0.0, _sessions([1.0])).is_noop


def test_apply_replaces_previous_adjustments():
    engine = RedistributionEngine()
    sessions = _sessions([1.0] * 4)
    sessions[0].adjusted_hours = 0.9

    result = engine.redistribute(0.4, sessions)
    engine.apply(result, sessions)
    engine.apply(result, sessions)

    assert [s.adjusted_hours for s in sessions] == pytest.approx([0.1] * 4)
    assert result.new_daily_targets[sessions[0].date] == pytest.approx(1.1)


def test_calorie_deltas_follow_allocations():
    result = RedistributionEngine().redistribute(0.4, _sessions([1.0] * 4))

    assert list(result.calorie_deltas(588.0).values()) == pytest.approx([58.8] * 4)
