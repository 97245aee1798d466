"""Errors and warnings raised by the planning engine."""

from nutrition_planner.domain.plans import SelectionState
from nutrition_planner.domain.rules import Macro
from nutrition_planner.domain.targets import MealType


class InvalidProfileDataError(ValueError):
    """A profile field is present but semantically invalid."""

    def __init__(self, field_name: str, value: object) -> None:
        super().__init__(f"Invalid value for {field_name}: {value!r}")
        self.field_name = field_name
        self.value = value


class ConstraintConflictWarning(UserWarning):
    """Macro ranges could not be intersected and a rule range was dropped.

    Logged and recorded on the target profile; aggregation never raises it.
    """

    def __init__(self, condition_code: str, macro: Macro, message: str) -> None:
        super().__init__(message)
        self.condition_code = condition_code
        self.macro = macro


class NoEligibleRecipeError(LookupError):
    """No candidate survived hard exclusion, even with dedup fully relaxed."""

    def __init__(
        self,
        meal_type: MealType,
        excluded_ingredients: frozenset[str],
        states: tuple[SelectionState, ...] = (),
    ) -> None:
        excluded = ", ".join(sorted(excluded_ingredients)) or "none"
        super().__init__(
            f"No eligible recipe for {meal_type.value} (excluded: {excluded})"
        )
        self.meal_type = meal_type
        self.excluded_ingredients = excluded_ingredients
        self.states = states


class LedgerWriteFailure(RuntimeError):
    """A usage record could not be written."""
