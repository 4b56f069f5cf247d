"""Tests for adjustment policy configuration."""
from __future__ import annotations

import pytest

from cycleplan.config import Settings
from cycleplan.services.policy_config import PolicyConfig, load_policy_overrides


def test_defaults_come_from_settings():
    config = PolicyConfig.from_settings(Settings(auto_pause_threshold=4, edit_unlock_threshold=6))

    assert config.auto_pause_threshold == 4
    assert config.edit_unlock_threshold == 6
    assert config.max_daily_hours == 3.0
    assert config.weekly_reset_threshold == 7


def test_yaml_overrides_are_applied(tmp_path):
    path = tmp_path / "policy.yaml"
    path.write_text(
        "adjustment_policy:\n"
        "  grace_period_days: 1\n"
        "  auto_pause_threshold: 5\n"
        "  unknown_key: 3\n",
        encoding="utf-8",
    )

    config = PolicyConfig.from_settings(Settings(policy_config_path=path))

    assert config.grace_period_days == 1
    assert config.auto_pause_threshold == 5
    assert config.edit_unlock_threshold == 5


def test_missing_yaml_file_uses_settings(tmp_path):
    assert load_policy_overrides(tmp_path / "absent.yaml") == {}
    assert PolicyConfig.from_settings(Settings(policy_config_path=tmp_path / "absent.yaml")) == PolicyConfig()


def test_yaml_override_above_hard_ceiling_is_rejected(tmp_path):
    path = tmp_path / "policy.yaml"
    path.write_text("adjustment_policy:\n  max_daily_hours: 5\n", encoding="utf-8")

    with pytest.raises(ValueError, match="hard daily ceiling"):
        PolicyConfig.from_settings(Settings(policy_config_path=path))


def test_invalid_override_value_is_rejected():
    with pytest.raises(ValueError, match="grace_period_days"):
        PolicyConfig().with_overrides({"grace_period_days": "soon"})


def test_settings_reject_daily_limit_above_ceiling():
    with pytest.raises(ValueError):
        Settings(max_daily_hours=5.0, hard_daily_ceiling_hours=4.0)
