"""Domain models for condition nutrition rules."""

from dataclasses import dataclass, field
from enum import IntEnum, StrEnum


class Macro(StrEnum):
    """Macronutrients tracked by the planner."""

    CARBS = "carbs"
    PROTEIN = "protein"
    FAT = "fat"


KCAL_PER_GRAM: dict[Macro, float] = {
    Macro.CARBS: 4.0,
    Macro.PROTEIN: 4.0,
    Macro.FAT: 9.0,
}


class Severity(IntEnum):
    """Ordinal used to order rules and settle macro conflicts."""

    LOW = 1
    MODERATE = 2
    HIGH = 3
    CRITICAL = 4


@dataclass(frozen=True)
class CalorieAdjustment:
    """Calorie change for a condition.

    Either a fixed delta in kcal, or a rate in kcal per kg of standard body
    weight. When ``kcal_per_standard_kg`` is set it takes precedence.
    """

    delta_kcal: float = 0.0
    kcal_per_standard_kg: float | None = None
    reason: str = ""

    @property
    def is_weight_based(self) -> bool:
        """Return True when the adjustment needs a body weight to resolve."""
        return self.kcal_per_standard_kg is not None


@dataclass(frozen=True)
class MacroRange:
    """Allowed range for one macro.

    Expressed as percent of daily calories, or for special cases as grams
    per kg of standard body weight.
    """

    macro: Macro
    min_pct: float | None = None
    max_pct: float | None = None
    min_g_per_kg: float | None = None
    max_g_per_kg: float | None = None

    @property
    def is_weight_based(self) -> bool:
        """Return True when the range is expressed per kg of body weight."""
        return self.min_g_per_kg is not None and self.max_g_per_kg is not None

    def resolve_grams(
        self, total_calories: float, reference_weight_kg: float | None
    ) -> tuple[float, float] | None:
        """Return the range in grams, or None when it cannot be resolved."""
        if self.is_weight_based:
            if reference_weight_kg is None:
                return None
            return (
                reference_weight_kg * self.min_g_per_kg,
                reference_weight_kg * self.max_g_per_kg,
            )
        if self.min_pct is None or self.max_pct is None:
            return None
        kcal_per_gram = KCAL_PER_GRAM[self.macro]
        return (
            total_calories * self.min_pct / 100 / kcal_per_gram,
            total_calories * self.max_pct / 100 / kcal_per_gram,
        )


@dataclass(frozen=True)
class ConditionNutritionRule:
    """Nutrition constraints contributed by one health condition."""

    condition_code: str
    label: str
    severity: Severity
    calorie_adjustment: CalorieAdjustment = field(default_factory=CalorieAdjustment)
    macro_ranges: tuple[MacroRange, ...] = ()
    micronutrient_caps: dict[str, float] = field(default_factory=dict)
    excluded_ingredient_tags: frozenset[str] = field(default_factory=frozenset)
    preferred_ingredient_tags: dict[str, float] = field(default_factory=dict)

    def macro_range(self, macro: Macro) -> MacroRange | None:
        """Return the range this rule sets for a macro, if any."""
        for macro_range in self.macro_ranges:
            if macro_range.macro == macro:
                return macro_range
        return None
