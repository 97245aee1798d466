"""Tests for the usage history ledger."""

from datetime import timedelta

import pytest

from nutrition_planner.domain.errors import LedgerWriteFailure
from nutrition_planner.domain.targets import MealType
from nutrition_planner.services.ledger import UsageHistoryLedger
from tests.conftest import PLAN_DATE, InMemoryUsageStore


def test_usage_inside_window_is_recent(ledger, usage_store) -> None:
    usage_store.add("u1", "recipe-1", MealType.LUNCH, PLAN_DATE - timedelta(days=30))

    assert ledger.was_recently_used("u1", "recipe-1", window_days=30)
    assert not ledger.was_recently_used("u1", "recipe-1", window_days=29)
    assert not ledger.was_recently_used("u2", "recipe-1", window_days=30)


def test_usage_on_plan_date_does_not_count(ledger, usage_store) -> None:
    usage_store.add("u1", "recipe-1", MealType.LUNCH, PLAN_DATE)

    assert not ledger.was_recently_used("u1", "recipe-1", as_of=PLAN_DATE)
    assert ledger.was_recently_used(
        "u1", "recipe-1", as_of=PLAN_DATE + timedelta(days=1)
    )


def test_zero_window_never_matches(ledger, usage_store) -> None:
    usage_store.add("u1", "recipe-1", MealType.LUNCH, PLAN_DATE - timedelta(days=1))

    assert not ledger.was_recently_used("u1", "recipe-1", window_days=0)
    assert ledger.recently_used("u1", window_days=0) == frozenset()


def test_window_is_capped_at_retention(usage_store) -> None:
    ledger = UsageHistoryLedger(
        store=usage_store, retention_days=10, clock=lambda: PLAN_DATE
    )
    usage_store.add("u1", "recipe-1", MealType.DINNER, PLAN_DATE - timedelta(days=20))

    assert not ledger.was_recently_used("u1", "recipe-1", window_days=30)


def test_recently_used_lists_identifiers(ledger, usage_store) -> None:
    usage_store.add("u1", "a", MealType.BREAKFAST, PLAN_DATE - timedelta(days=2))
    usage_store.add("u1", "b", MealType.LUNCH, PLAN_DATE - timedelta(days=40))

    assert ledger.recently_used("u1", window_days=30) == frozenset({"a"})


def test_record_overwrites_same_slot_and_day(ledger, usage_store) -> None:
    ledger.record("u1", "first", MealType.DINNER, PLAN_DATE)
    ledger.record("u1", "second", MealType.DINNER, PLAN_DATE)

    assert len(usage_store.records) == 1
    stored = usage_store.records[("u1", MealType.DINNER, PLAN_DATE)]
    assert stored.recipe_identifier == "second"


def test_record_retries_then_succeeds(ledger, usage_store) -> None:
    usage_store.failing_writes = 1

    ledger.record("u1", "recipe-1", MealType.SNACK, PLAN_DATE)

    assert usage_store.write_attempts == 2
    assert ("u1", MealType.SNACK, PLAN_DATE) in usage_store.records


def test_record_raises_after_retries() -> None:
    store = InMemoryUsageStore(failing_writes=5)
    ledger = UsageHistoryLedger(store=store, retry_attempts=2, retry_delay_seconds=0.0)

    with pytest.raises(LedgerWriteFailure) as exc_info:
        ledger.record("u1", "recipe-1", MealType.SNACK, PLAN_DATE)

    assert store.write_attempts == 3
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_purge_removes_records_past_retention(ledger, usage_store) -> None:
    usage_store.add("u1", "old", MealType.LUNCH, PLAN_DATE - timedelta(days=91))
    usage_store.add("u1", "edge", MealType.DINNER, PLAN_DATE - timedelta(days=90))
    usage_store.add("u1", "new", MealType.SNACK, PLAN_DATE - timedelta(days=1))

    deleted = ledger.purge_older_than()

    assert deleted == 1
    remaining = {record.recipe_identifier for record in usage_store.records.values()}
    assert remaining == {"edge", "new"}
