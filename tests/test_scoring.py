"""Tests for recipe scoring."""

import pytest

from nutrition_planner.domain.profiles import Gender, HealthProfile
from nutrition_planner.domain.targets import MealType
from nutrition_planner.services.allocation import allocate_slot
from nutrition_planner.services.scoring import RecipeScorer, deviation_score
from tests.conftest import make_recipe


def test_deviation_score() -> None:
    assert deviation_score(600, 600) == 100.0
    assert deviation_score(540, 600) == pytest.approx(90.0)
    assert deviation_score(1500, 600) == 0.0
    assert deviation_score(10, 0) == 0.0


def test_perfect_match_scores_calorie_and_macro_weights(aggregator) -> None:
    targets = aggregator.aggregate(HealthProfile())
    slot = allocate_slot(targets, MealType.BREAKFAST)
    recipe = make_recipe("Exact", 600, 33.75, 82.5, 18.3)

    scored = RecipeScorer(targets).score(slot, recipe)

    assert scored is not None
    assert scored.breakdown.calorie_score == 100.0
    assert scored.breakdown.macro_score == pytest.approx(100.0)
    assert scored.score == pytest.approx(80.0)


def test_missing_nutrition_scores_zero_components(aggregator) -> None:
    targets = aggregator.aggregate(HealthProfile())
    slot = allocate_slot(targets, MealType.DINNER)

    scored = RecipeScorer(targets).score(slot, make_recipe("Mystery Dish"))

    assert scored is not None
    assert scored.score == 0.0


def test_excluded_candidate_is_not_scored(aggregator) -> None:
    targets = aggregator.aggregate(HealthProfile(allergies=frozenset({"peanut"})))
    slot = allocate_slot(targets, MealType.SNACK)
    scorer = RecipeScorer(targets)
    peanut_bar = make_recipe("Peanut Bar", 100, 5, 10, 6, ("Peanut", "oat"))

    assert not scorer.is_eligible(peanut_bar)
    assert scorer.score(slot, peanut_bar) is None
    assert scorer.rank(slot, [peanut_bar]) == []


def test_preferred_ingredients_add_bonus(aggregator) -> None:
    targets = aggregator.aggregate(
        HealthProfile(gender=Gender.MALE, diseases=frozenset({"diabetes"}))
    )
    slot = allocate_slot(targets, MealType.LUNCH)
    scorer = RecipeScorer(targets)

    plain = scorer.score(slot, make_recipe("Rice Bowl", 500, 25, 60, 15, ("rice",)))
    whole = scorer.score(
        slot, make_recipe("Brown Rice Bowl", 500, 25, 60, 15, ("whole_grain",))
    )

    assert whole.breakdown.condition_bonus == 5.0
    assert whole.score - plain.score == pytest.approx(5.0)


def test_exceeding_slot_cap_is_penalized(aggregator) -> None:
    targets = aggregator.aggregate(HealthProfile(diseases=frozenset({"hypertension"})))
    slot = allocate_slot(targets, MealType.BREAKFAST)
    scorer = RecipeScorer(targets)

    salty = scorer.score(slot, make_recipe("Salty", 600, 30, 80, 18, sodium_mg=900))
    mild = scorer.score(slot, make_recipe("Mild", 600, 30, 80, 18, sodium_mg=300))

    assert slot.micronutrient_caps["sodium"] == 600.0
    assert salty.breakdown.condition_penalty == 10.0
    assert mild.breakdown.condition_penalty == 0.0
    assert mild.score - salty.score == pytest.approx(10.0)


def test_rank_is_deterministic_with_ties(aggregator) -> None:
    targets = aggregator.aggregate(HealthProfile())
    slot = allocate_slot(targets, MealType.DINNER)
    scorer = RecipeScorer(targets)
    candidates = [
        make_recipe("Zucchini Pasta", 600, 30, 80, 20),
        make_recipe("Aubergine Pasta", 600, 30, 80, 20),
        make_recipe("Far Off", 1200, 90, 10, 60),
    ]

    first = [item.candidate.title for item in scorer.rank(slot, candidates)]
    second = [item.candidate.title for item in scorer.rank(slot, reversed(candidates))]

    assert first == ["Aubergine Pasta", "Zucchini Pasta", "Far Off"]
    assert first == second
