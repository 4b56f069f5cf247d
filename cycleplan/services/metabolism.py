"""Energy expenditure maths: BMR, TDEE and cycling calorie burn."""

from __future__ import annotations

import logging
from datetime import date

from cycleplan.models.plan import ActivityLevel, Gender


logger = logging.getLogger(__name__)

KCAL_PER_KG = 7700

ACTIVITY_MULTIPLIERS: dict[str, float] = {
    ActivityLevel.SEDENTARY.value: 1.2,
    ActivityLevel.LIGHT.value: 1.375,
    ActivityLevel.MODERATE.value: 1.55,
    ActivityLevel.ACTIVE.value: 1.725,
    ActivityLevel.VERY_ACTIVE.value: 1.9,
}
DEFAULT_ACTIVITY_MULTIPLIER = 1.55

CYCLING_METS: dict[str, float] = {
    "light": 4.0,
    "moderate": 8.0,
    "vigorous": 12.0,
}
# Correction factor applied on top of MET x weight for cycling.
CYCLING_CALORIE_FACTOR = 1.05

PLAN_TYPE_SAFE = "Safe (45min - 1hr)"
PLAN_TYPE_RECOMMENDED = "Recommended (1.1hr - 2hr)"
PLAN_TYPE_RISKY = "Risky (2.1hr - 3hr)"
PLAN_TYPE_UNSAFE = "Unsafe (above 3hr limit)"
PLAN_TYPE_BELOW_MINIMUM = "Below healthy minimum (<45min)"


def age_from_birth_date(birth_date: date, today: date | None = None) -> int:
    """
    Return the age in calendar years.

    Only the years are subtracted, so someone born in December counts as a year
    older from January 1st.

    Example:
        >>> age_from_birth_date(date(1995, 12, 31), today=date(2025, 1, 1))
        30
    """
    today = today or date.today()
    return today.year - birth_date.year


def compute_bmr(weight: float, height: float, age: int, gender: str) -> float:
    """
    Basal metabolic rate in kcal/day using the revised Harris-Benedict equation.

    Args:
        weight: Body weight in kg
        height: Height in cm
        age: Age in years
        gender: "male", "female" or "other" (anything but male uses the female formula)

    Returns:
        BMR in kcal/day
    """
    if str(gender).lower() == Gender.MALE.value:
        return 88.362 + (13.397 * weight) + (4.799 * height) - (5.677 * age)
    return 447.593 + (9.247 * weight) + (3.098 * height) - (4.330 * age)


def normalize_activity_level(activity_level: str | None) -> str | None:
    if activity_level is None:
        return None
    return str(activity_level).strip().lower().replace(" ", "_")


def compute_tdee(bmr: float, activity_level: str | None) -> float:
    """Total daily energy expenditure; unknown activity levels fall back to moderate."""

    level = normalize_activity_level(activity_level)
    multiplier = ACTIVITY_MULTIPLIERS.get(level)
    if multiplier is None:
        logger.warning(
            "Unknown activity level %r - using default multiplier %.2f",
            activity_level,
            DEFAULT_ACTIVITY_MULTIPLIER,
        )
        multiplier = DEFAULT_ACTIVITY_MULTIPLIER
    return bmr * multiplier


def calories_per_hour_cycling(weight: float, intensity: str = "moderate") -> float:
    """
    Calories burned per hour of cycling: MET x weight x 1.05.

    Raises:
        ValueError: If the intensity is not light, moderate or vigorous
    """
    try:
        met = CYCLING_METS[intensity]
    except KeyError:
        raise ValueError(
            f"Unknown cycling intensity {intensity!r}; expected one of {', '.join(CYCLING_METS)}"
        ) from None
    return met * weight * CYCLING_CALORIE_FACTOR


def calories_for_hours(weight: float, hours: float, intensity: str = "moderate") -> float:
    return calories_per_hour_cycling(weight, intensity) * max(0.0, hours)


def classify_plan_type(daily_cycling_hours: float) -> str:
    """
    Map daily cycling hours to a plan band.

    Bands: [0.75, 1.0] Safe, (1.0, 2.0] Recommended, (2.0, 3.0] Risky,
    above 3.0 Unsafe, anything shorter than 45 minutes is below the minimum.
    """
    hours = daily_cycling_hours
    if 0.75 <= hours <= 1.0:
        return PLAN_TYPE_SAFE
    if 1.0 < hours <= 2.0:
        return PLAN_TYPE_RECOMMENDED
    if 2.0 < hours <= 3.0:
        return PLAN_TYPE_RISKY
    if hours > 3.0:
        return PLAN_TYPE_UNSAFE
    return PLAN_TYPE_BELOW_MINIMUM
