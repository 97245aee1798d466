"""Tests for configuration helpers."""

from uuid import uuid4

import pytest

from nutrition_planner.config import parse_user_ids


@pytest.mark.parametrize("raw", [None, "", " ", "*"])
def test_parse_user_ids_allows_everyone(raw) -> None:
    assert parse_user_ids(raw) is None


def test_parse_user_ids_parses_uuids() -> None:
    first, second = uuid4(), uuid4()
    assert parse_user_ids(f"{first}, {second},,not-a-uuid") == {first, second}


def test_parse_user_ids_without_valid_ids() -> None:
    assert parse_user_ids("nope") is None


def test_settings_defaults(settings) -> None:
    assert settings.dedup_window_days == 30
    assert settings.usage_retention_days == 90
    assert settings.max_concurrent_subjects == 8
    assert settings.condition_rules_path is None
