"""Split daily targets into per-meal slot targets."""

from nutrition_planner.domain.targets import (
    MealSlotTarget,
    MealType,
    NutritionTargetProfile,
)

MEAL_RATIOS: dict[MealType, float] = {
    MealType.BREAKFAST: 0.30,
    MealType.LUNCH: 0.35,
    MealType.DINNER: 0.30,
    MealType.SNACK: 0.05,
}


def allocate_meals(targets: NutritionTargetProfile) -> list[MealSlotTarget]:
    """Return slot targets in breakfast, lunch, dinner, snack order."""
    return [allocate_slot(targets, meal_type) for meal_type in MEAL_RATIOS]


def allocate_slot(
    targets: NutritionTargetProfile, meal_type: MealType
) -> MealSlotTarget:
    """Return the target for a single meal slot."""
    ratio = MEAL_RATIOS[meal_type]
    return MealSlotTarget(
        meal_type=meal_type,
        ratio=ratio,
        calorie_target=round(targets.total_calories * ratio),
        macro_targets={
            macro: target.scaled(ratio)
            for macro, target in targets.macro_targets.items()
        },
        micronutrient_caps={
            nutrient: round(cap * ratio, 1)
            for nutrient, cap in targets.micronutrient_caps.items()
        },
    )
