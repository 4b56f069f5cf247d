"""Pytest configuration for global fixtures and logging setup."""
from __future__ import annotations

import os
import tempfile
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

_TMP_DIR = Path(tempfile.mkdtemp(prefix="cycleplan-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["LOG_DIR"] = str(_TMP_DIR / "logs")
os.environ["SCHEDULER_LOCK_FILE"] = str(_TMP_DIR / ".scheduler.lock")

from cycleplan.logging_config import configure_logging

configure_logging()

from cycleplan.database import Base, SessionLocal, engine
from cycleplan.main import app
from cycleplan.models import database_models  # noqa: F401
from cycleplan.models.plan import (
    AutoAdjustmentSettings,
    Goal,
    Plan,
    PlanSummary,
    Profile,
    Session,
    SessionStatus,
)
from cycleplan.routers import plans

FIXED_NOW = datetime(2025, 1, 10, 9, 30)


@pytest.fixture(scope="session", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def _clean_tables() -> Iterator[None]:
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db_session():
    """Database session rolled back and closed after the test."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def test_client() -> Iterator[TestClient]:
    """FastAPI test client with the clock pinned to FIXED_NOW."""

    app.dependency_overrides[plans.get_now] = lambda: FIXED_NOW
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def profile() -> Profile:
    return Profile(
        weight=70.0,
        height=175.0,
        birth_date=date(1995, 6, 1),
        gender="male",
        activity_level="moderate",
    )


@pytest.fixture
def make_plan() -> Callable[..., Plan]:
    """Build an in-memory plan with flat planned hours, one session per day."""

    def _make(
        start: date = date(2025, 1, 1),
        days: int = 10,
        planned_hours: float = 1.0,
        account_id: str = "rider-1",
        statuses: dict[int, SessionStatus] | None = None,
        settings: AutoAdjustmentSettings | None = None,
    ) -> Plan:
        sessions = [
            Session(date=start + timedelta(days=i), planned_hours=planned_hours)
            for i in range(days)
        ]
        for index, status in (statuses or {}).items():
            sessions[index].status = status
            if status == SessionStatus.MISSED:
                sessions[index].missed_hours = planned_hours
        plan = Plan(
            account_id=account_id,
            goal=Goal(
                current_weight=80.0,
                target_weight=75.0,
                start_date=start,
                target_date=start + timedelta(days=days - 1),
            ),
            total_days=days - 1,
            sessions=sessions,
            plan_summary=PlanSummary(
                bmr=1700.0,
                tdee=2635.0,
                daily_calorie_goal=planned_hours * 588.0,
                daily_cycling_hours=planned_hours,
                total_cycling_hours=planned_hours * days,
                total_calories_to_burn=planned_hours * 588.0 * days,
                total_plan_days=days - 1,
                plan_type="Safe (45min - 1hr)",
            ),
            auto_adjustment_settings=settings or AutoAdjustmentSettings(),
        )
        plan.missed_count = len(plan.sessions_with_status(SessionStatus.MISSED))
        plan.total_missed_hours = sum(s.missed_hours for s in plan.sessions)
        return plan

    return _make
