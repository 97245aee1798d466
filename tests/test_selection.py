"""Tests for recipe selection."""

from datetime import timedelta

import pytest

from nutrition_planner.domain.errors import NoEligibleRecipeError
from nutrition_planner.domain.plans import SelectionState
from nutrition_planner.domain.profiles import HealthProfile
from nutrition_planner.domain.targets import MealType
from nutrition_planner.services.allocation import allocate_slot
from nutrition_planner.services.ledger import UsageHistoryLedger
from nutrition_planner.services.scoring import RecipeScorer
from nutrition_planner.services.selection import RecipeSelector, relaxation_windows
from tests.conftest import PLAN_DATE, InMemoryUsageStore, make_recipe


def _slot_and_scorer(aggregator, profile: HealthProfile, meal_type: MealType):
    targets = aggregator.aggregate(profile)
    return allocate_slot(targets, meal_type), RecipeScorer(targets)


def test_relaxation_windows() -> None:
    assert relaxation_windows(30) == (30, 15, 7, 0)
    assert relaxation_windows(10) == (10, 0)
    assert relaxation_windows(0) == (0,)


def test_only_non_excluded_candidate_is_selected(aggregator, ledger) -> None:
    slot, scorer = _slot_and_scorer(
        aggregator, HealthProfile(allergies=frozenset({"peanut"})), MealType.LUNCH
    )
    pool = [
        make_recipe("Satay Noodles", 700, 30, 90, 20, ("peanut", "noodle")),
        make_recipe("Peanut Salad", 690, 35, 70, 22, ("peanut", "lettuce")),
        make_recipe("Plain Toast", 150, 4, 28, 2, ("bread",)),
    ]

    selection = RecipeSelector(ledger).select("u1", slot, scorer, pool, PLAN_DATE)

    assert selection.recipe.title == "Plain Toast"
    assert len(selection.ranking) == 1
    assert selection.states == (
        SelectionState.PENDING,
        SelectionState.SCORING,
        SelectionState.SELECTED,
    )


def test_empty_pool_raises_naming_slot(aggregator, ledger) -> None:
    slot, scorer = _slot_and_scorer(aggregator, HealthProfile(), MealType.SNACK)

    with pytest.raises(NoEligibleRecipeError, match="snack") as exc_info:
        RecipeSelector(ledger).select("u1", slot, scorer, [], PLAN_DATE)

    assert exc_info.value.meal_type == MealType.SNACK


def test_fully_excluded_pool_raises_with_exclusions(aggregator, ledger) -> None:
    slot, scorer = _slot_and_scorer(
        aggregator, HealthProfile(allergies=frozenset({"shrimp"})), MealType.DINNER
    )
    pool = [make_recipe("Shrimp Pasta", 600, 30, 70, 20, ("shrimp",))]

    with pytest.raises(NoEligibleRecipeError) as exc_info:
        RecipeSelector(ledger).select("u1", slot, scorer, pool, PLAN_DATE)

    assert exc_info.value.excluded_ingredients == frozenset({"shrimp"})


def test_recently_used_recipe_is_skipped(aggregator, ledger, usage_store) -> None:
    slot, scorer = _slot_and_scorer(aggregator, HealthProfile(), MealType.DINNER)
    best = make_recipe("Best Match", 600, 30, 80, 18)
    runner_up = make_recipe("Runner Up", 750, 30, 80, 18)
    usage_store.add("u1", best.identifier, MealType.DINNER, PLAN_DATE - timedelta(days=3))

    selection = RecipeSelector(ledger).select(
        "u1", slot, scorer, [best, runner_up], PLAN_DATE
    )

    assert selection.recipe.title == "Runner Up"
    assert selection.dedup_window_days == 30


def test_window_relaxes_until_a_recipe_is_fresh(aggregator, ledger, usage_store) -> None:
    slot, scorer = _slot_and_scorer(aggregator, HealthProfile(), MealType.BREAKFAST)
    pool = [
        make_recipe("Pancakes", 600, 20, 90, 15),
        make_recipe("Granola", 550, 15, 80, 14),
    ]
    usage_store.add("u1", "pancakes", MealType.BREAKFAST, PLAN_DATE - timedelta(days=10))
    usage_store.add("u1", "granola", MealType.LUNCH, PLAN_DATE - timedelta(days=12))

    selection = RecipeSelector(ledger).select("u1", slot, scorer, pool, PLAN_DATE)

    assert selection.dedup_window_days == 7
    assert selection.recipe.title == "Pancakes"
    assert selection.states.count(SelectionState.RELAXING) == 2
    assert selection.states[-1] == SelectionState.SELECTED


def test_window_relaxes_to_zero(aggregator, ledger, usage_store) -> None:
    slot, scorer = _slot_and_scorer(aggregator, HealthProfile(), MealType.SNACK)
    only = make_recipe("Apple", 95, 0.5, 25, 0.3)
    usage_store.add("u1", only.identifier, MealType.SNACK, PLAN_DATE - timedelta(days=1))

    selection = RecipeSelector(ledger).select("u1", slot, scorer, [only], PLAN_DATE)

    assert selection.recipe is only
    assert selection.dedup_window_days == 0


def test_selection_records_usage(aggregator, ledger, usage_store) -> None:
    slot, scorer = _slot_and_scorer(aggregator, HealthProfile(), MealType.LUNCH)
    recipe = make_recipe("Soup", 700, 30, 90, 20, recipe_id="recipe-42")

    RecipeSelector(ledger).select("u1", slot, scorer, [recipe], PLAN_DATE)

    stored = usage_store.records[("u1", MealType.LUNCH, PLAN_DATE)]
    assert stored.recipe_identifier == "recipe-42"


def test_ledger_failure_does_not_fail_selection(aggregator) -> None:
    store = InMemoryUsageStore(failing_writes=10)
    ledger = UsageHistoryLedger(store=store, retry_delay_seconds=0.0)
    slot, scorer = _slot_and_scorer(aggregator, HealthProfile(), MealType.LUNCH)
    recipe = make_recipe("Soup", 700, 30, 90, 20)

    selection = RecipeSelector(ledger).select("u1", slot, scorer, [recipe], PLAN_DATE)

    assert selection.recipe is recipe
    assert selection.usage_recorded is False


def test_selection_is_deterministic(aggregator, usage_store) -> None:
    slot, scorer = _slot_and_scorer(aggregator, HealthProfile(), MealType.DINNER)
    pool = [
        make_recipe("B Dish", 600, 30, 80, 18),
        make_recipe("A Dish", 600, 30, 80, 18),
        make_recipe("C Dish", 650, 30, 80, 18),
    ]

    titles = set()
    for subject in ("s1", "s2", "s3"):
        ledger = UsageHistoryLedger(store=usage_store, retry_delay_seconds=0.0)
        selection = RecipeSelector(ledger).select(subject, slot, scorer, pool, PLAN_DATE)
        titles.add(selection.recipe.title)

    assert titles == {"A Dish"}


def test_exhausted_selection_keeps_its_state_trail(aggregator, ledger) -> None:
    slot, scorer = _slot_and_scorer(aggregator, HealthProfile(), MealType.BREAKFAST)

    with pytest.raises(NoEligibleRecipeError) as exc_info:
        RecipeSelector(ledger).select("u1", slot, scorer, [], PLAN_DATE)

    states = exc_info.value.states
    assert states[:2] == (SelectionState.PENDING, SelectionState.SCORING)
    assert states.count(SelectionState.RELAXING) == 3
    assert states[-1] == SelectionState.EXHAUSTED
