"""Domain models for health profiles and planning subjects."""

from dataclasses import dataclass, field
from enum import StrEnum
from uuid import UUID

HOUSEHOLD_SUFFIX = "household"


class Gender(StrEnum):
    """Gender as recorded on a health profile."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class ActivityLevel(StrEnum):
    """Self-reported activity level."""

    SEDENTARY = "sedentary"
    LIGHT = "light"
    MODERATE = "moderate"
    ACTIVE = "active"
    VERY_ACTIVE = "very_active"


@dataclass(frozen=True)
class HealthProfile:
    """Snapshot of the health data the planner reads for one subject."""

    age: int | None = None
    gender: Gender | None = None
    weight_kg: float | None = None
    height_cm: float | None = None
    activity_level: ActivityLevel | None = None
    diseases: frozenset[str] = field(default_factory=frozenset)
    allergies: frozenset[str] = field(default_factory=frozenset)
    daily_calorie_goal_override: float | None = None


@dataclass(frozen=True)
class SubjectKey:
    """A user, one of their family members, or their whole household."""

    user_id: UUID
    family_member_id: UUID | None = None
    household: bool = False

    @classmethod
    def for_household(cls, user_id: UUID) -> "SubjectKey":
        """Return the key for a plan shared by a user and their family."""
        return cls(user_id=user_id, household=True)

    @property
    def storage_key(self) -> str:
        """Return the string key used to partition stored rows."""
        if self.household:
            return f"{self.user_id}:{HOUSEHOLD_SUFFIX}"
        if self.family_member_id is None:
            return str(self.user_id)
        return f"{self.user_id}:{self.family_member_id}"

    @classmethod
    def parse(cls, value: str) -> "SubjectKey":
        """Parse a key produced by ``storage_key``."""
        user_part, _, member_part = value.partition(":")
        if member_part == HOUSEHOLD_SUFFIX:
            return cls.for_household(UUID(user_part))
        return cls(
            user_id=UUID(user_part),
            family_member_id=UUID(member_part) if member_part else None,
        )
