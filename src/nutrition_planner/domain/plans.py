"""Domain models for selections, rationales and generated plans."""

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum

from nutrition_planner.domain.profiles import SubjectKey
from nutrition_planner.domain.recipes import RecipeCandidate, ScoredCandidate
from nutrition_planner.domain.targets import MealSlotTarget, NutritionTargetProfile


class SelectionState(StrEnum):
    """States a meal slot passes through during selection."""

    PENDING = "pending"
    SCORING = "scoring"
    RELAXING = "relaxing"
    SELECTED = "selected"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RationaleReason:
    """One plain-language reason with the numbers behind it."""

    code: str
    message: str
    values: tuple[tuple[str, float], ...] = ()


@dataclass(frozen=True)
class SelectionRationale:
    """Ordered reasons explaining a selected recipe."""

    meal_type: str
    recipe_title: str
    reasons: tuple[RationaleReason, ...]

    def render(self) -> str:
        """Return the rationale as plain text, one reason per line."""
        lines = [f"{self.meal_type}: {self.recipe_title}"]
        lines.extend(f"- {reason.message}" for reason in self.reasons)
        return "\n".join(lines)


@dataclass(frozen=True)
class MealSelection:
    """Outcome of selecting a recipe for one slot."""

    slot: MealSlotTarget
    selected: ScoredCandidate
    ranking: tuple[ScoredCandidate, ...]
    dedup_window_days: int
    states: tuple[SelectionState, ...]
    usage_recorded: bool = True

    @property
    def recipe(self) -> RecipeCandidate:
        """Return the chosen recipe."""
        return self.selected.candidate


@dataclass(frozen=True)
class PlannedMeal:
    """A selected recipe with its slot target and rationale."""

    slot: MealSlotTarget
    recipe: RecipeCandidate
    score: ScoredCandidate
    rationale: SelectionRationale
    dedup_window_days: int


@dataclass(frozen=True)
class DailyPlan:
    """Plan for one subject on one day."""

    subject: SubjectKey
    plan_date: date
    targets: NutritionTargetProfile
    meals: tuple[PlannedMeal, ...]

    @property
    def total_calories(self) -> float:
        """Return the summed reported calories of the planned meals."""
        return sum(meal.recipe.nutrition.calories or 0.0 for meal in self.meals)


@dataclass
class BatchResult:
    """Outcome of a batch run over many subjects."""

    plans: list[DailyPlan] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        """Return the number of subjects attempted."""
        return len(self.plans) + len(self.failures)


@dataclass(frozen=True)
class DayNutritionStats:
    """Summed nutrition of one planned day; unreported values count as zero."""

    plan_date: date
    day_of_week: int
    total_calories: float
    total_carbs_g: float
    total_protein_g: float
    total_fat_g: float
    total_sodium_mg: float
    meal_count: int

    @classmethod
    def from_plan(cls, plan: DailyPlan, day_of_week: int) -> "DayNutritionStats":
        """Sum the reported nutrition of a day's meals."""
        facts = [meal.recipe.nutrition for meal in plan.meals]
        return cls(
            plan_date=plan.plan_date,
            day_of_week=day_of_week,
            total_calories=sum(item.calories or 0.0 for item in facts),
            total_carbs_g=sum(item.carbs_g or 0.0 for item in facts),
            total_protein_g=sum(item.protein_g or 0.0 for item in facts),
            total_fat_g=sum(item.fat_g or 0.0 for item in facts),
            total_sodium_mg=sum(item.sodium_mg or 0.0 for item in facts),
            meal_count=len(facts),
        )


@dataclass(frozen=True)
class WeeklyPlan:
    """Seven consecutive daily plans for one subject."""

    subject: SubjectKey
    week_start: date
    days: tuple[DailyPlan, ...]

    @property
    def week_year(self) -> int:
        """Return the ISO year of the week start."""
        return self.week_start.isocalendar().year

    @property
    def week_number(self) -> int:
        """Return the ISO week number of the week start."""
        return self.week_start.isocalendar().week

    @property
    def recipe_count(self) -> int:
        """Return how many distinct recipes the week uses."""
        return len({meal.recipe.identifier for day in self.days for meal in day.meals})

    def nutrition_stats(self) -> tuple[DayNutritionStats, ...]:
        """Return per-day totals, numbered from 1 for the first day."""
        return tuple(
            DayNutritionStats.from_plan(day, index)
            for index, day in enumerate(self.days, start=1)
        )


@dataclass
class WeeklyBatchResult:
    """Outcome of generating weeks for many subjects."""

    weeks: list[WeeklyPlan] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        """Return the number of subjects attempted."""
        return len(self.weeks) + len(self.failures)
