"""Supabase repository for candidate recipes."""

from dataclasses import dataclass

from supabase import Client

from nutrition_planner.domain.recipes import NutritionFacts, RecipeCandidate
from nutrition_planner.domain.targets import MealType
from nutrition_planner.services.selection import CandidatePoolProvider

_RECIPE_COLUMNS = (
    "id, title, meal_types, ingredient_tags, calories, protein_g, carbs_g, fat_g, "
    "sodium_mg, fiber_g, potassium_mg, phosphorus_mg"
)
_NUTRITION_FIELDS = (
    "calories",
    "protein_g",
    "carbs_g",
    "fat_g",
    "sodium_mg",
    "fiber_g",
    "potassium_mg",
    "phosphorus_mg",
)


@dataclass
class SupabaseRecipeRepository(CandidatePoolProvider):
    """Reads candidate pools from the ``recipes`` table."""

    client: Client
    pool_size: int = 200

    def get_candidates(
        self, meal_type: MealType, preferences: frozenset[str]
    ) -> list[RecipeCandidate]:
        """Return recipes for a meal type, preferred-tag matches first."""
        rows: list[dict[str, object]] = []
        if preferences:
            preferred = (
                self.client.table("recipes")
                .select(_RECIPE_COLUMNS)
                .contains("meal_types", [meal_type.value])
                .overlaps("ingredient_tags", sorted(preferences))
                .order("title", desc=False)
                .limit(self.pool_size)
                .execute()
            )
            rows.extend(preferred.data or [])
        general = (
            self.client.table("recipes")
            .select(_RECIPE_COLUMNS)
            .contains("meal_types", [meal_type.value])
            .order("title", desc=False)
            .limit(self.pool_size)
            .execute()
        )
        rows.extend(general.data or [])

        candidates: list[RecipeCandidate] = []
        seen: set[str] = set()
        for row in rows:
            candidate = _parse_recipe(row)
            if candidate is None or candidate.identifier in seen:
                continue
            seen.add(candidate.identifier)
            candidates.append(candidate)
            if len(candidates) >= self.pool_size:
                break
        return candidates


def _parse_recipe(row: dict[str, object]) -> RecipeCandidate | None:
    title = str(row.get("title") or "").strip()
    if not title:
        return None
    nutrition = NutritionFacts(
        **{name: _optional_float(row.get(name)) for name in _NUTRITION_FIELDS}
    )
    tags = row.get("ingredient_tags") or []
    return RecipeCandidate(
        title=title,
        nutrition=nutrition,
        ingredient_tags=frozenset(str(tag) for tag in tags if tag),
        id=str(row["id"]) if row.get("id") else None,
    )


def _optional_float(value: object) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
