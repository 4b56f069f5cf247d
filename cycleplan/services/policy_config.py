"""Adjustment policy thresholds, from settings with optional YAML overrides."""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from cycleplan.config import Settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyConfig:
    """Independently tunable thresholds; none of them is derived from another."""

    max_daily_hours: float = 3.0
    grace_period_days: int = 2
    weekly_reset_threshold: int = 7
    auto_pause_threshold: int = 3
    edit_unlock_threshold: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> "PolicyConfig":
        config = cls(
            max_daily_hours=settings.max_daily_hours,
            grace_period_days=settings.grace_period_days,
            weekly_reset_threshold=settings.weekly_reset_threshold,
            auto_pause_threshold=settings.auto_pause_threshold,
            edit_unlock_threshold=settings.edit_unlock_threshold,
        )
        if settings.policy_config_path is None:
            return config
        overrides = load_policy_overrides(settings.policy_config_path)
        if overrides:
            config = config.with_overrides(overrides)
            if config.max_daily_hours > settings.hard_daily_ceiling_hours:
                raise ValueError(
                    f"max_daily_hours {config.max_daily_hours} exceeds the hard daily ceiling "
                    f"{settings.hard_daily_ceiling_hours}"
                )
        return config

    def with_overrides(self, overrides: dict[str, Any]) -> "PolicyConfig":
        known = {f.name: f.type for f in fields(self)}
        values: dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                logger.warning("Ignoring unknown adjustment_policy key %r", key)
                continue
            cast = float if key == "max_daily_hours" else int
            try:
                values[key] = cast(value)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Invalid value for adjustment_policy.{key}: {value!r}") from exc
            if values[key] < 0:
                raise ValueError(f"adjustment_policy.{key} must be non-negative")
        return replace(self, **values)


def load_policy_overrides(config_path: Path) -> dict[str, Any]:
    """Read the ``adjustment_policy`` section of a YAML file; empty if absent."""

    path = Path(config_path)
    if not path.exists():
        logger.warning("Policy config %s not found - using settings defaults", path)
        return {}

    with path.open("r", encoding="utf-8") as fh:
        full_config = yaml.safe_load(fh) or {}

    section = full_config.get("adjustment_policy", {})
    if not section:
        logger.warning("No adjustment_policy section in %s - using settings defaults", path)
        return {}
    if not isinstance(section, dict):
        raise ValueError(f"adjustment_policy in {path} must be a mapping")
    return section
