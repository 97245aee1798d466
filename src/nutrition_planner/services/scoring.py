"""Recipe scoring against a meal slot target."""

from collections.abc import Iterable
from dataclasses import dataclass

from nutrition_planner.domain.recipes import (
    RecipeCandidate,
    ScoreBreakdown,
    ScoredCandidate,
    normalize_tag,
)
from nutrition_planner.domain.rules import Macro
from nutrition_planner.domain.targets import MealSlotTarget, NutritionTargetProfile

CALORIE_WEIGHT = 0.5
MACRO_WEIGHT = 0.3
CAP_PENALTY = 10.0


def deviation_score(actual: float, target: float) -> float:
    """Return 100 for an exact match, falling linearly to 0 at 100% off."""
    if target <= 0:
        return 100.0 if actual <= 0 else 0.0
    return max(0.0, 100 - abs(actual - target) / target * 100)


@dataclass(frozen=True)
class RecipeScorer:
    """Scores candidates for the slots of one target profile."""

    targets: NutritionTargetProfile

    def is_eligible(self, candidate: RecipeCandidate) -> bool:
        """Return False when the candidate contains an excluded ingredient."""
        tags = {normalize_tag(tag) for tag in candidate.ingredient_tags}
        return tags.isdisjoint(self.targets.excluded_ingredients)

    def score(
        self, slot: MealSlotTarget, candidate: RecipeCandidate
    ) -> ScoredCandidate | None:
        """Score a candidate, or return None if it is excluded."""
        if not self.is_eligible(candidate):
            return None
        nutrition = candidate.nutrition

        calorie_score = 0.0
        if nutrition.calories is not None:
            calorie_score = deviation_score(nutrition.calories, slot.calorie_target)

        macro_scores = []
        for macro in Macro:
            grams = nutrition.macro_grams(macro)
            target = slot.macro_targets.get(macro)
            if grams is None or target is None:
                continue
            macro_scores.append(deviation_score(grams, target.midpoint_g))
        macro_score = sum(macro_scores) / len(macro_scores) if macro_scores else 0.0

        tags = {normalize_tag(tag) for tag in candidate.ingredient_tags}
        condition_bonus = sum(
            weight
            for tag, weight in sorted(self.targets.preferred_ingredients.items())
            if tag in tags
        )

        exceeded = 0
        for nutrient, cap in slot.micronutrient_caps.items():
            value = nutrition.micronutrient_mg(nutrient)
            if value is not None and value > cap:
                exceeded += 1
        condition_penalty = exceeded * CAP_PENALTY

        total = (
            CALORIE_WEIGHT * calorie_score
            + MACRO_WEIGHT * macro_score
            + condition_bonus
            - condition_penalty
        )
        return ScoredCandidate(
            candidate=candidate,
            score=round(total, 6),
            breakdown=ScoreBreakdown(
                calorie_score=round(calorie_score, 6),
                macro_score=round(macro_score, 6),
                condition_bonus=condition_bonus,
                condition_penalty=condition_penalty,
            ),
        )

    def rank(
        self, slot: MealSlotTarget, candidates: Iterable[RecipeCandidate]
    ) -> list[ScoredCandidate]:
        """Score eligible candidates, best first; ties go to the earlier title."""
        scored = []
        for candidate in candidates:
            result = self.score(slot, candidate)
            if result is not None:
                scored.append(result)
        return sorted(
            scored,
            key=lambda item: (-item.score, item.candidate.title, item.candidate.identifier),
        )
