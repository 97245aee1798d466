"""Plain-language explanations for selected recipes.

Everything here is derived from the slot target, the recipe nutrition and
the aggregated targets, so the same inputs always render the same text.
"""

from dataclasses import dataclass, field

from nutrition_planner.domain.plans import RationaleReason, SelectionRationale
from nutrition_planner.domain.recipes import RecipeCandidate, normalize_tag
from nutrition_planner.domain.rules import Macro
from nutrition_planner.domain.targets import MealSlotTarget, NutritionTargetProfile
from nutrition_planner.services.catalog import ConditionRuleCatalog

FIBER_REASON_MIN_G = 5.0

_MACRO_LABELS = {
    Macro.CARBS: "Carbohydrate",
    Macro.PROTEIN: "Protein",
    Macro.FAT: "Fat",
}


@dataclass(frozen=True)
class SelectionRationaleBuilder:
    """Builds the reasons a recipe was chosen for a slot."""

    condition_labels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_catalog(cls, catalog: ConditionRuleCatalog) -> "SelectionRationaleBuilder":
        """Create a builder that names conditions with catalog labels."""
        return cls(
            condition_labels={
                code: rule.label for code, rule in sorted(catalog.rules.items())
            }
        )

    def build(
        self,
        slot: MealSlotTarget,
        candidate: RecipeCandidate,
        targets: NutritionTargetProfile,
    ) -> SelectionRationale:
        """Return the ordered reasons for the selection."""
        reasons = [_calorie_reason(slot, candidate)]
        reasons.extend(self._macro_reasons(slot, candidate, targets))
        condition_reasons = self._condition_reasons(slot, candidate, targets)
        if condition_reasons:
            reasons.extend(condition_reasons)
        elif not targets.active_conditions:
            reasons.append(
                RationaleReason(
                    code="balanced",
                    message="No health conditions apply; chosen for overall balance.",
                )
            )
        if targets.excluded_ingredients:
            excluded = sorted(targets.excluded_ingredients)
            reasons.append(
                RationaleReason(
                    code="exclusions_respected",
                    message=(
                        f"Free of all {len(excluded)} excluded ingredients "
                        f"({', '.join(excluded)})."
                    ),
                    values=(("excluded_count", float(len(excluded))),),
                )
            )
        fiber = candidate.nutrition.fiber_g
        if fiber is not None and fiber >= FIBER_REASON_MIN_G:
            reasons.append(
                RationaleReason(
                    code="fiber",
                    message=f"Supplies {fiber:.1f} g of fiber.",
                    values=(("fiber_g", fiber),),
                )
            )
        return SelectionRationale(
            meal_type=slot.meal_type.value,
            recipe_title=candidate.title,
            reasons=tuple(reasons),
        )

    def _label(self, code: str) -> str:
        return self.condition_labels.get(code, code.replace("_", " "))

    def _macro_reasons(
        self,
        slot: MealSlotTarget,
        candidate: RecipeCandidate,
        targets: NutritionTargetProfile,
    ) -> list[RationaleReason]:
        reasons = []
        meal = slot.meal_type.value
        for macro in Macro:
            grams = candidate.nutrition.macro_grams(macro)
            target = slot.macro_targets.get(macro)
            if grams is None or target is None:
                continue
            if grams < target.min_g:
                position = "below"
            elif grams > target.max_g:
                position = "above"
            else:
                position = "within"
            sources = targets.macro_sources.get(macro, ())
            labels = " and ".join(self._label(code) for code in sources)
            suffix = f" set for {labels}" if labels else ""
            reasons.append(
                RationaleReason(
                    code=f"macro_{position}",
                    message=(
                        f"{_MACRO_LABELS[macro]} {grams:.1f} g is {position} the "
                        f"{target.min_g:.1f}-{target.max_g:.1f} g {meal} range"
                        f"{suffix}."
                    ),
                    values=(
                        (f"{macro.value}_g", grams),
                        (f"{macro.value}_min_g", target.min_g),
                        (f"{macro.value}_max_g", target.max_g),
                    ),
                )
            )
        return reasons

    def _condition_reasons(
        self,
        slot: MealSlotTarget,
        candidate: RecipeCandidate,
        targets: NutritionTargetProfile,
    ) -> list[RationaleReason]:
        reasons: list[RationaleReason] = []
        tags = {normalize_tag(tag) for tag in candidate.ingredient_tags}
        meal = slot.meal_type.value
        for code in targets.active_conditions:
            label = self._label(code)
            for nutrient, source in sorted(targets.cap_sources.items()):
                if source != code or nutrient not in slot.micronutrient_caps:
                    continue
                value = candidate.nutrition.micronutrient_mg(nutrient)
                if value is None:
                    continue
                cap = slot.micronutrient_caps[nutrient]
                values = ((f"{nutrient}_mg", value), (f"{nutrient}_cap_mg", cap))
                if value <= cap:
                    reasons.append(
                        RationaleReason(
                            code="cap_respected",
                            message=(
                                f"{nutrient.capitalize()} {value:.0f} mg stays under "
                                f"the {cap:.0f} mg {meal} limit for {label}."
                            ),
                            values=values,
                        )
                    )
                else:
                    reasons.append(
                        RationaleReason(
                            code="cap_exceeded",
                            message=(
                                f"{nutrient.capitalize()} {value:.0f} mg is above "
                                f"the {cap:.0f} mg {meal} limit for {label}; "
                                "kept as the best overall fit."
                            ),
                            values=values,
                        )
                    )
            matched = sorted(
                tag
                for tag, sources in targets.preferred_sources.items()
                if code in sources and tag in tags
            )
            if matched:
                reasons.append(
                    RationaleReason(
                        code="preferred_ingredients",
                        message=(
                            f"Contains {', '.join(tag.replace('_', ' ') for tag in matched)}, "
                            f"favoured for {label}."
                        ),
                        values=tuple(
                            (f"bonus:{tag}", targets.preferred_ingredients[tag])
                            for tag in matched
                        ),
                    )
                )
        return reasons


def _calorie_reason(slot: MealSlotTarget, candidate: RecipeCandidate) -> RationaleReason:
    target = slot.calorie_target
    calories = candidate.nutrition.calories
    if calories is None:
        return RationaleReason(
            code="calories_unknown",
            message=(
                f"Calories are not reported; chosen against the {target} kcal "
                f"{slot.meal_type.value} target on the remaining criteria."
            ),
            values=(("target_kcal", float(target)),),
        )
    deviation = abs(calories - target) / target * 100 if target else 0.0
    return RationaleReason(
        code="calorie_fit",
        message=(
            f"Provides {calories:.0f} kcal against a {target} kcal "
            f"{slot.meal_type.value} target ({deviation:.1f}% off)."
        ),
        values=(
            ("calories", calories),
            ("target_kcal", float(target)),
            ("deviation_pct", round(deviation, 1)),
        ),
    )
