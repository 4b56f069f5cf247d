"""Tests for BMR, TDEE and cycling calorie maths."""
from __future__ import annotations

from datetime import date

import pytest

from cycleplan.services import metabolism


def test_age_uses_calendar_year_subtraction():
    assert metabolism.age_from_birth_date(date(1995, 12, 31), today=date(2025, 1, 1)) == 30
    assert metabolism.age_from_birth_date(date(1995, 1, 1), today=date(2025, 12, 31)) == 30


def test_bmr_male_and_female_formulas():
    male = metabolism.compute_bmr(70, 175, 30, "male")
    female = metabolism.compute_bmr(70, 175, 30, "female")

    assert male == pytest.approx(88.362 + 13.397 * 70 + 4.799 * 175 - 5.677 * 30)
    assert female == pytest.approx(447.593 + 9.247 * 70 + 3.098 * 175 - 4.330 * 30)


def test_bmr_other_gender_uses_female_formula():
    assert metabolism.compute_bmr(60, 165, 40, "other") == metabolism.compute_bmr(60, 165, 40, "female")


@pytest.mark.parametrize(
    ("level", "multiplier"),
    [
        ("sedentary", 1.2),
        ("light", 1.375),
        ("moderate", 1.55),
        ("active", 1.725),
        ("very_active", 1.9),
        ("Very Active", 1.9),
    ],
)
def test_tdee_multipliers(level, multiplier):
    assert metabolism.compute_tdee(1000.0, level) == pytest.approx(1000.0 * multiplier)


def test_tdee_unknown_level_falls_back_to_moderate(caplog):
    with caplog.at_level("WARNING"):
        tdee = metabolism.compute_tdee(1000.0, "couch")

    assert tdee == pytest.approx(1550.0)
    assert "Unknown activity level" in caplog.text


def test_calories_per_hour_for_seventy_kilo_rider():
    assert metabolism.calories_per_hour_cycling(70) == pytest.approx(588.0)
    assert metabolism.calories_per_hour_cycling(70, "light") == pytest.approx(294.0)
    assert metabolism.calories_per_hour_cycling(70, "vigorous") == pytest.approx(882.0)


def test_calories_per_hour_rejects_unknown_intensity():
    with pytest.raises(ValueError, match="Unknown cycling intensity"):
        metabolism.calories_per_hour_cycling(70, "sprint")


def test_calories_for_negative_hours_is_zero():
    assert metabolism.calories_for_hours(70, -1.0) == 0.0


@pytest.mark.parametrize(
    ("hours", "expected"),
    [
        (0.727, metabolism.PLAN_TYPE_BELOW_MINIMUM),
        (0.75, metabolism.PLAN_TYPE_SAFE),
        (1.0, metabolism.PLAN_TYPE_SAFE),
        (1.05, metabolism.PLAN_TYPE_RECOMMENDED),
        (2.0, metabolism.PLAN_TYPE_RECOMMENDED),
        (2.5, metabolism.PLAN_TYPE_RISKY),
        (3.0, metabolism.PLAN_TYPE_RISKY),
        (3.2, metabolism.PLAN_TYPE_UNSAFE),
        (0.0, metabolism.PLAN_TYPE_BELOW_MINIMUM),
    ],
)
def test_classify_plan_type_bands(hours, expected):
    assert metabolism.classify_plan_type(hours) == expected
