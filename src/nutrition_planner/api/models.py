"""Pydantic response models for the planner API."""

from datetime import date

from pydantic import BaseModel

from nutrition_planner.domain.plans import (
    DailyPlan,
    DayNutritionStats,
    PlannedMeal,
    WeeklyPlan,
)
from nutrition_planner.domain.targets import MealSlotTarget, NutritionTargetProfile


class MacroTargetModel(BaseModel):
    """Gram range for one macro."""

    min_g: float
    max_g: float


class AdjustmentModel(BaseModel):
    """One aggregation step."""

    condition_code: str
    kind: str
    delta: float
    reason: str


class SlotTargetModel(BaseModel):
    """Targets for one meal slot."""

    meal_type: str
    ratio: float
    calorie_target: int
    macro_targets: dict[str, MacroTargetModel]
    micronutrient_caps: dict[str, float]

    @classmethod
    def from_slot(cls, slot: MealSlotTarget) -> "SlotTargetModel":
        """Build the response model from a slot target."""
        return cls(
            meal_type=slot.meal_type.value,
            ratio=slot.ratio,
            calorie_target=slot.calorie_target,
            macro_targets={
                macro.value: MacroTargetModel(min_g=target.min_g, max_g=target.max_g)
                for macro, target in slot.macro_targets.items()
            },
            micronutrient_caps=dict(slot.micronutrient_caps),
        )


class TargetProfileModel(BaseModel):
    """Aggregated daily targets with their slot breakdown."""

    total_calories: int
    base_calories: float
    calorie_floor: int
    active_conditions: list[str]
    macro_targets: dict[str, MacroTargetModel]
    micronutrient_caps: dict[str, float]
    excluded_ingredients: list[str]
    preferred_ingredients: dict[str, float]
    applied_adjustments: list[AdjustmentModel]
    slots: list[SlotTargetModel]

    @classmethod
    def from_targets(
        cls, targets: NutritionTargetProfile, slots: list[MealSlotTarget]
    ) -> "TargetProfileModel":
        """Build the response model from aggregated targets."""
        return cls(
            total_calories=targets.total_calories,
            base_calories=round(targets.base_calories, 1),
            calorie_floor=targets.calorie_floor,
            active_conditions=list(targets.active_conditions),
            macro_targets={
                macro.value: MacroTargetModel(min_g=target.min_g, max_g=target.max_g)
                for macro, target in targets.macro_targets.items()
            },
            micronutrient_caps=dict(targets.micronutrient_caps),
            excluded_ingredients=sorted(targets.excluded_ingredients),
            preferred_ingredients=dict(sorted(targets.preferred_ingredients.items())),
            applied_adjustments=[
                AdjustmentModel(
                    condition_code=adjustment.condition_code,
                    kind=adjustment.kind.value,
                    delta=adjustment.delta,
                    reason=adjustment.reason,
                )
                for adjustment in targets.applied_adjustments
            ],
            slots=[SlotTargetModel.from_slot(slot) for slot in slots],
        )


class PlannedMealModel(BaseModel):
    """A selected recipe and why it was chosen."""

    meal_type: str
    recipe_id: str | None
    recipe_title: str
    calories: float | None
    calorie_target: int
    score: float
    dedup_window_days: int
    rationale: list[str]

    @classmethod
    def from_meal(cls, meal: PlannedMeal) -> "PlannedMealModel":
        """Build the response model from a planned meal."""
        return cls(
            meal_type=meal.slot.meal_type.value,
            recipe_id=meal.recipe.id,
            recipe_title=meal.recipe.title,
            calories=meal.recipe.nutrition.calories,
            calorie_target=meal.slot.calorie_target,
            score=meal.score.score,
            dedup_window_days=meal.dedup_window_days,
            rationale=[reason.message for reason in meal.rationale.reasons],
        )


class DailyPlanModel(BaseModel):
    """Generated plan for one subject and day."""

    subject_key: str
    plan_date: date
    total_calories: int
    meals: list[PlannedMealModel]

    @classmethod
    def from_plan(cls, plan: DailyPlan) -> "DailyPlanModel":
        """Build the response model from a daily plan."""
        return cls(
            subject_key=plan.subject.storage_key,
            plan_date=plan.plan_date,
            total_calories=plan.targets.total_calories,
            meals=[PlannedMealModel.from_meal(meal) for meal in plan.meals],
        )


class DayNutritionStatsModel(BaseModel):
    """Summed nutrition of one day in a week."""

    plan_date: date
    day_of_week: int
    total_calories: float
    total_carbs_g: float
    total_protein_g: float
    total_fat_g: float
    total_sodium_mg: float
    meal_count: int

    @classmethod
    def from_stats(cls, stats: DayNutritionStats) -> "DayNutritionStatsModel":
        """Build the response model from day totals."""
        return cls(
            plan_date=stats.plan_date,
            day_of_week=stats.day_of_week,
            total_calories=round(stats.total_calories, 1),
            total_carbs_g=round(stats.total_carbs_g, 1),
            total_protein_g=round(stats.total_protein_g, 1),
            total_fat_g=round(stats.total_fat_g, 1),
            total_sodium_mg=round(stats.total_sodium_mg, 1),
            meal_count=stats.meal_count,
        )


class WeeklyPlanModel(BaseModel):
    """Seven generated days for one subject."""

    subject_key: str
    week_start: date
    week_year: int
    week_number: int
    recipe_count: int
    days: list[DailyPlanModel]
    nutrition_stats: list[DayNutritionStatsModel]

    @classmethod
    def from_week(cls, week: WeeklyPlan) -> "WeeklyPlanModel":
        """Build the response model from a weekly plan."""
        return cls(
            subject_key=week.subject.storage_key,
            week_start=week.week_start,
            week_year=week.week_year,
            week_number=week.week_number,
            recipe_count=week.recipe_count,
            days=[DailyPlanModel.from_plan(day) for day in week.days],
            nutrition_stats=[
                DayNutritionStatsModel.from_stats(stats)
                for stats in week.nutrition_stats()
            ],
        )


class BatchRunModel(BaseModel):
    """Summary of a scheduled batch run."""

    total: int
    success: int
    failed: int
    errors: dict[str, str]
    purged: int
    next_week_start: date | None = None
    weekly_generated: int = 0
    weekly_failed: int = 0
