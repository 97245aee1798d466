"""Domain models for aggregated nutrition targets."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType

from nutrition_planner.domain.rules import Macro


class MealType(StrEnum):
    """Meal slots in a daily plan."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class AdjustmentKind(StrEnum):
    """Category of an entry in ``applied_adjustments``."""

    CALORIE = "calorie"
    OVERRIDE = "override"
    FLOOR = "floor"
    CONFLICT = "conflict"
    SKIPPED = "skipped"
    HOUSEHOLD = "household"


def _freeze(instance: object, *names: str) -> None:
    for name in names:
        frozen = MappingProxyType(dict(getattr(instance, name)))
        object.__setattr__(instance, name, frozen)


@dataclass(frozen=True)
class MacroTarget:
    """Gram range for one macro."""

    min_g: float
    max_g: float

    @property
    def midpoint_g(self) -> float:
        """Return the centre of the range."""
        return (self.min_g + self.max_g) / 2

    def scaled(self, ratio: float) -> "MacroTarget":
        """Return the range scaled by a meal ratio."""
        return MacroTarget(
            min_g=round(self.min_g * ratio, 1), max_g=round(self.max_g * ratio, 1)
        )


@dataclass(frozen=True)
class AppliedAdjustment:
    """One step taken while aggregating, kept for explanations."""

    condition_code: str
    delta: float
    reason: str
    kind: AdjustmentKind = AdjustmentKind.CALORIE


@dataclass(frozen=True)
class NutritionTargetProfile:
    """Aggregated daily targets and constraints for one subject.

    Mapping fields are exposed read-only.
    """

    total_calories: int
    macro_targets: Mapping[Macro, MacroTarget]
    micronutrient_caps: Mapping[str, float] = field(default_factory=dict)
    excluded_ingredients: frozenset[str] = field(default_factory=frozenset)
    preferred_ingredients: Mapping[str, float] = field(default_factory=dict)
    applied_adjustments: tuple[AppliedAdjustment, ...] = ()
    active_conditions: tuple[str, ...] = ()
    base_calories: float = 0.0
    calorie_floor: int = 0
    cap_sources: Mapping[str, str] = field(default_factory=dict)
    preferred_sources: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    macro_sources: Mapping[Macro, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _freeze(
            self,
            "macro_targets",
            "micronutrient_caps",
            "preferred_ingredients",
            "cap_sources",
            "preferred_sources",
            "macro_sources",
        )

    @property
    def conflicts(self) -> tuple[AppliedAdjustment, ...]:
        """Return the macro conflicts resolved during aggregation."""
        return tuple(
            adjustment
            for adjustment in self.applied_adjustments
            if adjustment.kind == AdjustmentKind.CONFLICT
        )


@dataclass(frozen=True)
class MealSlotTarget:
    """Calorie and macro targets for one meal slot."""

    meal_type: MealType
    ratio: float
    calorie_target: int
    macro_targets: Mapping[Macro, MacroTarget]
    micronutrient_caps: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _freeze(self, "macro_targets", "micronutrient_caps")
