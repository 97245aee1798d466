"""Domain models for recipe candidates and their scores."""

from dataclasses import dataclass, field

from nutrition_planner.domain.rules import Macro


def normalize_tag(value: str) -> str:
    """Normalize an ingredient tag for set comparisons."""
    return "_".join(value.strip().lower().replace("-", " ").split())


def normalize_title(value: str) -> str:
    """Normalize a recipe title for use as an identifier."""
    return " ".join(value.strip().casefold().split())


@dataclass(frozen=True)
class NutritionFacts:
    """Per-serving nutrition reported by the recipe source."""

    calories: float | None = None
    protein_g: float | None = None
    carbs_g: float | None = None
    fat_g: float | None = None
    sodium_mg: float | None = None
    fiber_g: float | None = None
    potassium_mg: float | None = None
    phosphorus_mg: float | None = None

    def macro_grams(self, macro: Macro) -> float | None:
        """Return the reported grams for a macro."""
        if macro == Macro.CARBS:
            return self.carbs_g
        if macro == Macro.PROTEIN:
            return self.protein_g
        return self.fat_g

    def micronutrient_mg(self, nutrient: str) -> float | None:
        """Return the reported milligrams for a capped nutrient."""
        return {
            "sodium": self.sodium_mg,
            "potassium": self.potassium_mg,
            "phosphorus": self.phosphorus_mg,
        }.get(nutrient)


@dataclass(frozen=True)
class RecipeCandidate:
    """A recipe offered by the candidate pool."""

    title: str
    nutrition: NutritionFacts = field(default_factory=NutritionFacts)
    ingredient_tags: frozenset[str] = field(default_factory=frozenset)
    id: str | None = None

    @property
    def identifier(self) -> str:
        """Return the id when present, else the normalized title."""
        if self.id:
            return self.id
        return normalize_title(self.title)


@dataclass(frozen=True)
class ScoreBreakdown:
    """Components of a candidate score."""

    calorie_score: float
    macro_score: float
    condition_bonus: float
    condition_penalty: float


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate with its total score and breakdown."""

    candidate: RecipeCandidate
    score: float
    breakdown: ScoreBreakdown
