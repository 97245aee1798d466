"""Supabase repository for health profiles of users and family members."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import StrEnum
from uuid import UUID

from supabase import Client

from nutrition_planner.domain.profiles import (
    ActivityLevel,
    Gender,
    HealthProfile,
    SubjectKey,
)
from nutrition_planner.services.planning import HealthProfileProvider

_USER_COLUMNS = (
    "user_id, age, gender, height_cm, weight_kg, activity_level, diseases, "
    "allergies, daily_calorie_goal_override"
)
_MEMBER_COLUMNS = (
    "id, user_id, birth_date, gender, height_cm, weight_kg, activity_level, "
    "diseases, allergies"
)

_logger = logging.getLogger(__name__)


def _utc_today() -> date:
    return datetime.now(tz=UTC).date()


@dataclass
class SupabaseProfileRepository(HealthProfileProvider):
    """Reads ``user_health_profiles`` and ``family_members``."""

    client: Client
    clock: Callable[[], date] = field(default=_utc_today)

    def get_profile(self, subject: SubjectKey) -> HealthProfile:
        """Return the stored profile, or an empty one when nothing is stored."""
        if subject.family_member_id is None:
            response = (
                self.client.table("user_health_profiles")
                .select(_USER_COLUMNS)
                .eq("user_id", str(subject.user_id))
                .limit(1)
                .execute()
            )
            if not response.data:
                _logger.info("No health profile for %s", subject.storage_key)
                return HealthProfile()
            row = response.data[0]
            return _parse_profile(row, age=row.get("age"))

        response = (
            self.client.table("family_members")
            .select(_MEMBER_COLUMNS)
            .eq("id", str(subject.family_member_id))
            .eq("user_id", str(subject.user_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            _logger.info("No family member profile for %s", subject.storage_key)
            return HealthProfile()
        row = response.data[0]
        age = _age_from_birth_date(row.get("birth_date"), self.clock())
        return _parse_profile(row, age=age)

    def list_subjects(self) -> list[SubjectKey]:
        """Return every profiled user and family member, sorted by user."""
        users = (
            self.client.table("user_health_profiles")
            .select("user_id")
            .order("user_id", desc=False)
            .execute()
        )
        members = (
            self.client.table("family_members")
            .select("id, user_id")
            .order("user_id", desc=False)
            .execute()
        )
        subjects = [SubjectKey(user_id=UUID(row["user_id"])) for row in users.data or []]
        subjects.extend(
            SubjectKey(user_id=UUID(row["user_id"]), family_member_id=UUID(row["id"]))
            for row in members.data or []
        )
        return sorted(
            set(subjects),
            key=lambda subject: (
                str(subject.user_id),
                str(subject.family_member_id or ""),
            ),
        )


def _parse_profile(row: dict[str, object], age: object) -> HealthProfile:
    return HealthProfile(
        age=_whole(_number(age, "age")),
        gender=_enum(Gender, row.get("gender")),
        weight_kg=_number(row.get("weight_kg"), "weight_kg"),
        height_cm=_number(row.get("height_cm"), "height_cm"),
        activity_level=_enum(ActivityLevel, row.get("activity_level")),
        diseases=_codes(row.get("diseases")),
        allergies=_codes(row.get("allergies")),
        daily_calorie_goal_override=_number(
            row.get("daily_calorie_goal_override"), "daily_calorie_goal_override"
        ),
    )


def _number(value: object, field_name: str) -> float | None:
    if value is None or isinstance(value, int | float):
        return value
    try:
        return float(str(value))
    except ValueError:
        _logger.warning("Ignoring non-numeric %s value %r", field_name, value)
        return None


def _enum(enum_type: type[StrEnum], value: object) -> StrEnum | None:
    if not value:
        return None
    try:
        return enum_type(str(value).strip().lower())
    except ValueError:
        _logger.warning("Ignoring unknown %s value %r", enum_type.__name__, value)
        return None


def _codes(value: object) -> frozenset[str]:
    """Accept a list of codes or a list of ``{"code": ...}`` objects."""
    if not isinstance(value, list):
        return frozenset()
    codes = set()
    for item in value:
        code = item.get("code") if isinstance(item, dict) else item
        if isinstance(code, str) and code.strip():
            codes.add(code.strip())
    return frozenset(codes)


def _age_from_birth_date(value: object, today: date) -> int | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        born = date.fromisoformat(value[:10])
    except ValueError:
        _logger.warning("Ignoring invalid birth_date %r", value)
        return None
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


def _whole(value: float | None) -> int | float | None:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
