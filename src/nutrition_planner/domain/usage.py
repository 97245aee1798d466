"""Domain models for recipe usage history."""

from dataclasses import dataclass
from datetime import date

from nutrition_planner.domain.targets import MealType


@dataclass(frozen=True)
class UsageRecord:
    """A recipe served to a subject for one meal slot on one day."""

    subject_key: str
    recipe_identifier: str
    meal_type: MealType
    used_date: date
