"""Calorie budget calculations."""

import logging
import math
from dataclasses import dataclass, replace

from nutrition_planner.domain.errors import InvalidProfileDataError
from nutrition_planner.domain.profiles import ActivityLevel, Gender, HealthProfile

DEFAULT_DAILY_CALORIES = 2000.0
FEMALE_CALORIE_FLOOR = 1200
DEFAULT_CALORIE_FLOOR = 1500

ACTIVITY_FACTORS: dict[ActivityLevel, float] = {
    ActivityLevel.SEDENTARY: 1.2,
    ActivityLevel.LIGHT: 1.375,
    ActivityLevel.MODERATE: 1.55,
    ActivityLevel.ACTIVE: 1.725,
    ActivityLevel.VERY_ACTIVE: 1.9,
}

# field -> (exclusive lower bound, inclusive upper bound)
_FIELD_BOUNDS: dict[str, tuple[float, float]] = {
    "age": (-1, 130),
    "weight_kg": (0, 500),
    "height_cm": (0, 300),
    "daily_calorie_goal_override": (0, 10000),
}

_logger = logging.getLogger(__name__)


def validate_profile_field(field_name: str, value: object) -> None:
    """Raise ``InvalidProfileDataError`` if a present value is out of bounds."""
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidProfileDataError(field_name, value)
    lower, upper = _FIELD_BOUNDS[field_name]
    if math.isnan(value) or value <= lower or value > upper:
        raise InvalidProfileDataError(field_name, value)


def sanitize_profile(profile: HealthProfile) -> HealthProfile:
    """Return the profile with invalid numeric fields replaced by None."""
    replacements: dict[str, None] = {}
    for field_name in _FIELD_BOUNDS:
        try:
            validate_profile_field(field_name, getattr(profile, field_name))
        except InvalidProfileDataError as exc:
            _logger.warning("Ignoring invalid profile data: %s", exc)
            replacements[field_name] = None
    if not replacements:
        return profile
    return replace(profile, **replacements)


def mifflin_st_jeor(
    gender: Gender, weight_kg: float, height_cm: float, age: int
) -> float:
    """Return basal metabolic rate in kcal/day."""
    base = 10 * weight_kg + 6.25 * height_cm - 5 * age
    if gender == Gender.MALE:
        return base + 5
    return base - 161


def standard_body_weight(profile: HealthProfile) -> float | None:
    """Return the standard (ideal) body weight derived from height."""
    if profile.height_cm is None or profile.height_cm <= 100:
        return None
    factor = 0.9 if profile.gender == Gender.MALE else 0.85
    return (profile.height_cm - 100) * factor


def reference_weight(profile: HealthProfile) -> float | None:
    """Return the weight used by per-kg formulas."""
    standard = standard_body_weight(profile)
    if standard is not None:
        return standard
    return profile.weight_kg


def body_mass_index(profile: HealthProfile) -> float | None:
    """Return BMI when weight and height are known."""
    if profile.weight_kg is None or profile.height_cm is None:
        return None
    height_m = profile.height_cm / 100
    return profile.weight_kg / (height_m * height_m)


def calorie_floor(profile: HealthProfile) -> int:
    """Return the minimum daily calories for the profile."""
    if profile.gender == Gender.FEMALE:
        return FEMALE_CALORIE_FLOOR
    return DEFAULT_CALORIE_FLOOR


@dataclass(frozen=True)
class CalorieBase:
    """Base daily energy before condition adjustments."""

    calories: float
    source: str
    bmr: float | None = None
    activity_factor: float | None = None


@dataclass(frozen=True)
class CalorieBudgetCalculator:
    """Computes base energy need and the final daily budget."""

    default_calories: float = DEFAULT_DAILY_CALORIES

    def base(self, profile: HealthProfile) -> CalorieBase:
        """Return the base daily calories for a sanitized profile."""
        if profile.daily_calorie_goal_override is not None:
            return CalorieBase(
                calories=float(profile.daily_calorie_goal_override), source="override"
            )
        if (
            profile.weight_kg is None
            or profile.height_cm is None
            or profile.age is None
            or profile.gender is None
        ):
            return CalorieBase(calories=self.default_calories, source="default")
        bmr = mifflin_st_jeor(
            profile.gender, profile.weight_kg, profile.height_cm, profile.age
        )
        factor = ACTIVITY_FACTORS[profile.activity_level or ActivityLevel.SEDENTARY]
        return CalorieBase(
            calories=bmr * factor, source="bmr", bmr=bmr, activity_factor=factor
        )

    def total(self, profile: HealthProfile, base_calories: float, delta: float) -> int:
        """Apply the summed adjustment and clamp to the floor."""
        return max(calorie_floor(profile), round(base_calories + delta))
