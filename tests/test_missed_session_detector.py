"""Tests for missed session detection and status snapshots."""
from __future__ import annotations

from datetime import date, datetime

import pytest

from cycleplan.models.plan import SessionStatus
from cycleplan.services.missed_session_detector import (
    detect_missed,
    missed_session_alerts,
    missed_session_summary,
    plan_status,
    recompute_counters,
)


NOW = datetime(2025, 1, 4, 8, 0)


def test_days_before_today_become_missed(make_plan):
    plan = make_plan()

    detection = detect_missed(plan, NOW)

    assert [s.date for s in detection.newly_missed] == [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)]
    assert detection.new_missed_count == 3
    assert detection.new_missed_hours == pytest.approx(3.0)
    assert detection.plan.missed_count == 3
    assert detection.plan.total_missed_hours == pytest.approx(3.0)
    assert detection.plan.session_for(NOW.date()).status == SessionStatus.PENDING


def test_detection_does_not_modify_input(make_plan):
    plan = make_plan()

    detect_missed(plan, NOW)

    assert plan.missed_count == 0
    assert all(s.status == SessionStatus.PENDING for s in plan.sessions)


def test_second_detection_with_same_clock_finds_nothing(make_plan):
    first = detect_missed(make_plan(), NOW)

    second = detect_missed(first.plan, NOW)

    assert second.newly_missed == []
    assert second.plan.missed_count == first.plan.missed_count
    assert second.plan.total_missed_hours == first.plan.total_missed_hours


def test_only_pending_sessions_are_flipped(make_plan):
    plan = make_plan(statuses={0: SessionStatus.COMPLETED, 1: SessionStatus.IN_PROGRESS})

    detection = detect_missed(plan, NOW)

    assert [s.date for s in detection.newly_missed] == [date(2025, 1, 3)]
    assert detection.plan.sessions[1].status == SessionStatus.IN_PROGRESS


def test_counters_are_recomputed_from_sessions(make_plan):
    plan = make_plan(statuses={0: SessionStatus.MISSED})
    plan.missed_count = 42
    plan.total_missed_hours = 99.0

    recompute_counters(plan)

    assert plan.missed_count == 1
    assert plan.total_missed_hours == pytest.approx(1.0)


def test_plan_status_snapshot(make_plan):
    plan = make_plan(statuses={0: SessionStatus.COMPLETED, 1: SessionStatus.COMPLETED})
    plan = detect_missed(plan, NOW).plan

    status = plan_status(plan, NOW)

    assert status.day1_date == date(2025, 1, 1)
    assert status.days_since_start == 3
    assert status.day1_status == "completed"
    assert status.day1_missed is False
    assert status.total_expected_by_now == 4
    assert status.completed_sessions == 2
    assert status.completion_rate == 50
    assert status.missed_sessions == 1
    assert status.on_track is False
    assert status.today_session.day_number == 4
    assert status.total_sessions == 10


def test_plan_status_before_start(make_plan):
    status = plan_status(make_plan(), date(2024, 12, 25))

    assert status.days_since_start == 0
    assert status.total_expected_by_now == 0
    assert status.completion_rate == 0
    assert status.today_session is None
    assert status.on_track is True


def test_missed_summary_lists_day_numbers(make_plan):
    plan = detect_missed(make_plan(), NOW).plan

    summary = missed_session_summary(plan, NOW)

    assert [m["day_number"] for m in summary["missed_sessions"]] == [1, 2, 3]
    assert summary["missed_sessions"][0]["days_ago"] == 3
    assert summary["summary"]["total_missed"] == 3
    assert summary["summary"]["day1_missed"] is True


def test_alerts_flag_day1_and_adjustment(make_plan):
    detection = detect_missed(make_plan(), NOW)

    alerts = missed_session_alerts(detection.plan, detection, reset_threshold=7)

    assert [a.type for a in alerts] == ["missed_detected", "day1_missed", "adjustment_needed"]
    assert alerts[-1].action == "redistribute"


def test_alerts_recommend_reset_at_threshold(make_plan):
    detection = detect_missed(make_plan(), NOW)

    alerts = missed_session_alerts(detection.plan, detection, reset_threshold=3)

    assert alerts[-1].action == "reset"
    assert alerts[-1].severity == "error"


def test_no_alerts_once_acknowledged(make_plan):
    detection = detect_missed(make_plan(), NOW)
    for session in detection.plan.sessions_with_status(SessionStatus.MISSED):
        session.acknowledged = True

    assert missed_session_alerts(detection.plan, detection, reset_threshold=7) == []
