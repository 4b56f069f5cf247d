"""SQLAlchemy-backed storage for profiles and cycling plans."""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DbSession, selectinload
from sqlalchemy.orm.exc import StaleDataError

from cycleplan.errors import PlanConflict, PlanNotFound
from cycleplan.models.database_models import AdjustmentLog, BodyProfile, CyclingPlan, PlanSession
from cycleplan.models.plan import (
    AdjustmentRecord,
    AutoAdjustmentSettings,
    Goal,
    Plan,
    PlanSummary,
    Profile,
    RescheduleInfo,
    Session,
    SessionStatus,
    utc_now,
)


logger = logging.getLogger(__name__)


class SessionScheduleStore:
    """
    Load and save plans keyed by account id.

    Writes use an optimistic version check: saving a plan whose version no
    longer matches the stored row raises PlanConflict, and the caller reloads
    and retries.
    """

    def __init__(self, db: DbSession):
        self.db = db

    # Profiles -----------------------------------------------------------

    def load_profile(self, account_id: str) -> Profile:
        """Return the stored profile; missing rows give an empty (incomplete) profile."""

        row = self.db.scalar(select(BodyProfile).where(BodyProfile.account_id == account_id))
        if row is None:
            return Profile()
        return Profile(
            weight=row.weight,
            height=row.height,
            birth_date=row.birth_date,
            gender=row.gender,
            activity_level=row.activity_level,
        )

    def save_profile(self, account_id: str, profile: Profile) -> Profile:
        row = self.db.scalar(select(BodyProfile).where(BodyProfile.account_id == account_id))
        if row is None:
            row = BodyProfile(account_id=account_id)
            self.db.add(row)
        row.weight = profile.weight
        row.height = profile.height
        row.birth_date = profile.birth_date
        row.gender = profile.gender
        row.activity_level = profile.activity_level
        self.db.flush()
        logger.info("Saved profile for account=%s", account_id)
        return profile

    # Plans --------------------------------------------------------------

    def _query_plan(self):
        return select(CyclingPlan).options(
            selectinload(CyclingPlan.sessions),
            selectinload(CyclingPlan.adjustments),
        )

    def load_active_plan(self, account_id: str) -> Plan | None:
        row = self.db.scalar(
            self._query_plan().where(
                CyclingPlan.account_id == account_id,
                CyclingPlan.is_active == True,  # noqa: E712
            )
        )
        return _to_domain(row) if row is not None else None

    def load_latest_plan(self, account_id: str) -> Plan | None:
        """Most recent plan of the account, active or paused."""

        row = self.db.scalar(
            self._query_plan()
            .where(CyclingPlan.account_id == account_id)
            .order_by(CyclingPlan.created_at.desc(), CyclingPlan.id.desc())
            .limit(1)
        )
        return _to_domain(row) if row is not None else None

    def load_plan(self, plan_id: int) -> Plan:
        row = self.db.scalar(self._query_plan().where(CyclingPlan.id == plan_id))
        if row is None:
            raise PlanNotFound(f"Cycling plan {plan_id} not found", plan_id=plan_id)
        return _to_domain(row)

    def active_plan_refs(self) -> list[tuple[int, str]]:
        """(plan id, account id) for every active plan, for batch sweeps."""

        rows = self.db.execute(
            select(CyclingPlan.id, CyclingPlan.account_id).where(CyclingPlan.is_active == True)  # noqa: E712
        ).all()
        return [(row.id, row.account_id) for row in rows]

    def _deactivate_other_plans(self, account_id: str, keep_id: int | None = None) -> int:
        rows = self.db.scalars(
            select(CyclingPlan).where(
                CyclingPlan.account_id == account_id,
                CyclingPlan.is_active == True,  # noqa: E712
            )
        ).all()
        count = 0
        for row in rows:
            if row.id == keep_id:
                continue
            row.is_active = False
            count += 1
        if count:
            self.db.flush()
            logger.info("Deactivated %d previous plan(s) for account=%s", count, account_id)
        return count

    def create_plan(self, plan: Plan) -> Plan:
        """Persist a freshly generated plan and deactivate older active plans."""

        self._deactivate_other_plans(plan.account_id)

        summary = plan.plan_summary
        settings = plan.auto_adjustment_settings
        row = CyclingPlan(
            account_id=plan.account_id,
            current_weight=plan.goal.current_weight,
            target_weight=plan.goal.target_weight,
            start_date=plan.goal.start_date,
            target_date=plan.goal.target_date,
            total_days=plan.total_days,
            missed_count=plan.missed_count,
            total_missed_hours=plan.total_missed_hours,
            is_active=True,
            emergency_catch_up=plan.emergency_catch_up,
            auto_adjust_enabled=settings.enabled,
            max_daily_hours=settings.max_daily_hours,
            grace_period_days=settings.grace_period_days,
            weekly_reset_threshold=settings.weekly_reset_threshold,
            bmr=summary.bmr,
            tdee=summary.tdee,
            daily_calorie_goal=summary.daily_calorie_goal,
            daily_cycling_hours=summary.daily_cycling_hours,
            total_cycling_hours=summary.total_cycling_hours,
            total_calories_to_burn=summary.total_calories_to_burn,
            total_plan_days=summary.total_plan_days,
            plan_type=summary.plan_type,
        )
        row.sessions = [_session_row(s) for s in plan.sessions]
        row.adjustments = [_adjustment_row(r) for r in plan.adjustment_history]
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise PlanConflict(
                f"Another active plan was created concurrently for account {plan.account_id}",
                account_id=plan.account_id,
            ) from exc

        logger.info(
            "Created plan %s for account=%s with %d sessions",
            row.id,
            row.account_id,
            len(row.sessions),
        )
        return _to_domain(row)

    def save_plan(self, plan: Plan) -> Plan:
        """
        Write back counters, sessions, settings and new adjustment records.

        Raises:
            PlanNotFound: If the plan row is gone
            PlanConflict: If the stored version moved on since ``plan`` was loaded
        """
        if plan.id is None:
            raise PlanNotFound("Plan has not been created yet")

        row = self.db.scalar(self._query_plan().where(CyclingPlan.id == plan.id))
        if row is None:
            raise PlanNotFound(f"Cycling plan {plan.id} not found", plan_id=plan.id)
        if plan.version is not None and row.version != plan.version:
            raise PlanConflict(
                f"Plan {plan.id} was modified concurrently (version {plan.version} != {row.version})",
                plan_id=plan.id,
            )

        if plan.is_active and not row.is_active:
            self._deactivate_other_plans(plan.account_id, keep_id=row.id)

        row.missed_count = plan.missed_count
        row.total_missed_hours = plan.total_missed_hours
        row.is_active = plan.is_active
        row.emergency_catch_up = plan.emergency_catch_up
        row.daily_cycling_hours = plan.plan_summary.daily_cycling_hours
        row.auto_adjust_enabled = plan.auto_adjustment_settings.enabled
        row.max_daily_hours = plan.auto_adjustment_settings.max_daily_hours
        row.grace_period_days = plan.auto_adjustment_settings.grace_period_days
        row.weekly_reset_threshold = plan.auto_adjustment_settings.weekly_reset_threshold
        # Always touch the plan row so the version moves with session-only edits.
        row.updated_at = utc_now()

        rows_by_id = {s.id: s for s in row.sessions}
        for session in plan.sessions:
            session_row = rows_by_id.get(session.id) if session.id is not None else None
            if session_row is None:
                row.sessions.append(_session_row(session))
            else:
                _copy_session(session, session_row)

        # Adjustment history is append-only.
        for record in plan.adjustment_history[len(row.adjustments):]:
            row.adjustments.append(_adjustment_row(record))

        try:
            self.db.flush()
        except StaleDataError as exc:
            raise PlanConflict(f"Plan {plan.id} was modified concurrently", plan_id=plan.id) from exc
        except IntegrityError as exc:
            raise PlanConflict(
                f"Account {plan.account_id} already has another active plan",
                plan_id=plan.id,
            ) from exc

        logger.debug("Saved plan %s at version %s", row.id, row.version)
        return _to_domain(row)

    def deactivate_plan(self, plan_id: int) -> Plan:
        row = self.db.scalar(self._query_plan().where(CyclingPlan.id == plan_id))
        if row is None:
            raise PlanNotFound(f"Cycling plan {plan_id} not found", plan_id=plan_id)
        row.is_active = False
        self.db.flush()
        logger.info("Deactivated cycling plan: id=%s", plan_id)
        return _to_domain(row)


def _copy_session(session: Session, row: PlanSession) -> None:
    row.date = session.date
    row.planned_hours = session.planned_hours
    row.adjusted_hours = session.adjusted_hours
    row.completed_hours = session.completed_hours
    row.missed_hours = session.missed_hours
    row.calories_burned = session.calories_burned
    row.status = SessionStatus(session.status).value
    row.rescheduled_from = session.reschedule_info.original_date if session.reschedule_info else None
    row.reschedule_reason = session.reschedule_info.reason if session.reschedule_info else None
    row.acknowledged = session.acknowledged
    row.completed_at = session.completed_at


def _session_row(session: Session) -> PlanSession:
    row = PlanSession()
    _copy_session(session, row)
    return row


def _adjustment_row(record: AdjustmentRecord) -> AdjustmentLog:
    return AdjustmentLog(
        timestamp=record.timestamp,
        missed_hours=record.missed_hours,
        new_daily_target=record.new_daily_target,
        new_daily_calories=record.new_daily_calories,
        reason=record.reason,
        method=record.method,
    )


def _to_domain(row: CyclingPlan) -> Plan:
    sessions = [
        Session(
            id=s.id,
            date=s.date,
            planned_hours=s.planned_hours,
            adjusted_hours=s.adjusted_hours,
            completed_hours=s.completed_hours,
            missed_hours=s.missed_hours,
            calories_burned=s.calories_burned,
            status=SessionStatus(s.status),
            reschedule_info=(
                RescheduleInfo(original_date=s.rescheduled_from, reason=s.reschedule_reason)
                if s.rescheduled_from is not None
                else None
            ),
            completed_at=s.completed_at,
            acknowledged=s.acknowledged,
        )
        for s in sorted(row.sessions, key=lambda s: (s.date, s.id or 0))
    ]
    history = [
        AdjustmentRecord(
            timestamp=a.timestamp,
            missed_hours=a.missed_hours,
            new_daily_target=a.new_daily_target,
            reason=a.reason,
            method=a.method,
            new_daily_calories=a.new_daily_calories,
        )
        for a in row.adjustments
    ]
    return Plan(
        id=row.id,
        version=row.version,
        account_id=row.account_id,
        goal=Goal(
            current_weight=row.current_weight,
            target_weight=row.target_weight,
            start_date=row.start_date,
            target_date=row.target_date,
        ),
        total_days=row.total_days,
        sessions=sessions,
        plan_summary=PlanSummary(
            bmr=row.bmr,
            tdee=row.tdee,
            daily_calorie_goal=row.daily_calorie_goal,
            daily_cycling_hours=row.daily_cycling_hours,
            total_cycling_hours=row.total_cycling_hours,
            total_calories_to_burn=row.total_calories_to_burn,
            total_plan_days=row.total_plan_days,
            plan_type=row.plan_type,
        ),
        auto_adjustment_settings=AutoAdjustmentSettings(
            enabled=row.auto_adjust_enabled,
            max_daily_hours=row.max_daily_hours,
            grace_period_days=row.grace_period_days,
            weekly_reset_threshold=row.weekly_reset_threshold,
        ),
        missed_count=row.missed_count,
        total_missed_hours=row.total_missed_hours,
        is_active=row.is_active,
        emergency_catch_up=row.emergency_catch_up,
        adjustment_history=history,
        created_at=row.created_at,
    )
