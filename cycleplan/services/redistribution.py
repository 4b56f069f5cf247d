"""Weighted-proportional redistribution of missed hours with capped spillover."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from cycleplan.config import Settings
from cycleplan.models.plan import HARD_DAILY_CEILING_HOURS, Session


logger = logging.getLogger(__name__)


@dataclass
class Allocation:
    session_date: date
    planned_hours: float
    cap: float
    hours: float = 0.0

    @property
    def new_daily_target(self) -> float:
        return self.planned_hours + self.hours

    @property
    def spare_capacity(self) -> float:
        return self.cap - self.hours


@dataclass
class RedistributionResult:
    """Outcome of one redistribution run.

    ``unallocated_hours`` is the part of the deficit that could not be placed,
    either because every session hit its cap or because the spillover loop ran
    out of iterations. Callers must surface it.
    """

    deficit: float
    allocations: list[Allocation] = field(default_factory=list)
    unallocated_hours: float = 0.0
    iterations: int = 0
    capacity_exhausted: bool = False
    iteration_limit_hit: bool = False

    @property
    def allocated_hours(self) -> float:
        return sum(a.hours for a in self.allocations)

    @property
    def redistribution_map(self) -> dict[date, float]:
        return {a.session_date: a.hours for a in self.allocations}

    @property
    def new_daily_targets(self) -> dict[date, float]:
        return {a.session_date: a.new_daily_target for a in self.allocations}

    @property
    def is_noop(self) -> bool:
        return not self.allocations

    def calorie_deltas(self, calories_per_hour: float) -> dict[date, float]:
        return {a.session_date: a.hours * calories_per_hour for a in self.allocations}


class RedistributionEngine:
    """
    Spread a deficit over upcoming sessions in proportion to their planned hours.

    Each session may absorb at most ``min(planned * cap_ratio, session_cap_hours)``
    and never more than what keeps it under the hard daily ceiling. Whatever the
    first proportional pass cannot place is re-spread over sessions that still
    have room, up to ``max_iterations`` times.
    """

    def __init__(
        self,
        cap_ratio: float = 0.25,
        session_cap_hours: float = 0.75,
        hard_daily_ceiling: float = HARD_DAILY_CEILING_HOURS,
        max_iterations: int = 10,
        epsilon: float = 1e-6,
    ):
        self.cap_ratio = cap_ratio
        self.session_cap_hours = session_cap_hours
        self.hard_daily_ceiling = hard_daily_ceiling
        self.max_iterations = max_iterations
        self.epsilon = epsilon

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedistributionEngine":
        return cls(
            cap_ratio=settings.redistribution_cap_ratio,
            session_cap_hours=settings.redistribution_session_cap_hours,
            hard_daily_ceiling=settings.hard_daily_ceiling_hours,
            max_iterations=settings.redistribution_max_iterations,
        )

    def session_cap(self, planned_hours: float) -> float:
        cap = min(planned_hours * self.cap_ratio, self.session_cap_hours)
        cap = min(cap, self.hard_daily_ceiling - planned_hours)
        return max(0.0, cap)

    def redistribute(self, deficit: float, sessions: Sequence[Session]) -> RedistributionResult:
        """
        Compute allocations without touching the sessions.

        Args:
            deficit: Hours to place (total missed hours still outstanding)
            sessions: Pending sessions from the pivot date forward, in date order

        Returns:
            RedistributionResult with one allocation per session
        """
        if not sessions or deficit <= 0:
            return RedistributionResult(deficit=max(0.0, deficit))

        weights = [max(0.0, s.planned_hours) for s in sessions]
        total_weight = sum(weights) or 1.0
        allocations = [
            Allocation(session_date=s.date, planned_hours=s.planned_hours, cap=self.session_cap(s.planned_hours))
            for s in sessions
        ]

        for allocation, weight in zip(allocations, weights):
            allocation.hours = min(deficit * weight / total_weight, allocation.cap)
        remainder = max(0.0, deficit - sum(a.hours for a in allocations))

        iterations = 0
        while remainder > self.epsilon and iterations < self.max_iterations:
            open_slots = [
                (a, w) for a, w in zip(allocations, weights) if a.spare_capacity > self.epsilon
            ]
            if not open_slots:
                break
            iterations += 1
            open_weight = sum(w for _, w in open_slots)
            placed = 0.0
            for allocation, weight in open_slots:
                share = remainder * (weight / open_weight if open_weight > 0 else 1.0 / len(open_slots))
                give = min(share, allocation.spare_capacity)
                allocation.hours += give
                placed += give
            remainder = max(0.0, remainder - placed)

        spare_left = any(a.spare_capacity > self.epsilon for a in allocations)
        unresolved = remainder > self.epsilon
        result = RedistributionResult(
            deficit=deficit,
            allocations=allocations,
            unallocated_hours=remainder if unresolved else 0.0,
            iterations=iterations,
            capacity_exhausted=unresolved and not spare_left,
            iteration_limit_hit=unresolved and spare_left,
        )

        if unresolved:
            logger.warning(
                "Redistribution left %.3f of %.3f hours unallocated (capacity_exhausted=%s, iteration_limit_hit=%s)",
                result.unallocated_hours,
                deficit,
                result.capacity_exhausted,
                result.iteration_limit_hit,
            )
        else:
            logger.debug(
                "Redistributed %.3f hours over %d sessions in %d spillover iterations",
                result.allocated_hours,
                len(allocations),
                iterations,
            )
        return result

    @staticmethod
    def apply(result: RedistributionResult, sessions: Sequence[Session]) -> None:
        """
        Write allocations onto the sessions (full recompute).

        Every session in the window gets ``adjusted_hours`` replaced by its
        allocation, so applying the same deficit twice leaves the same state.
        """
        allocation_by_date = result.redistribution_map
        for session in sessions:
            session.adjusted_hours = allocation_by_date.get(session.date, 0.0)
