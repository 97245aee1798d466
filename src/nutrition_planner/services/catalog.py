"""Condition rule catalog.

Maps a health-condition code to the nutrition constraints it contributes.
The built-in values are simplified heuristics and can be replaced per
deployment with a JSON document (see ``ConditionRuleCatalog.from_json``).
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from nutrition_planner.domain.recipes import normalize_tag
from nutrition_planner.domain.rules import (
    CalorieAdjustment,
    ConditionNutritionRule,
    Macro,
    MacroRange,
    Severity,
)

_DEFAULT_RULES: tuple[ConditionNutritionRule, ...] = (
    ConditionNutritionRule(
        condition_code="ckd",
        label="chronic kidney disease",
        severity=Severity.CRITICAL,
        calorie_adjustment=CalorieAdjustment(
            kcal_per_standard_kg=-3.0,
            reason="moderate energy reduction scaled to standard body weight",
        ),
        macro_ranges=(
            MacroRange(Macro.PROTEIN, min_g_per_kg=0.6, max_g_per_kg=0.8),
        ),
        micronutrient_caps={"sodium": 1500.0, "potassium": 2000.0, "phosphorus": 800.0},
        excluded_ingredient_tags=frozenset({"processed_meat", "salted_fish", "organ_meat"}),
        preferred_ingredient_tags={"egg_white": 4.0, "cabbage": 3.0, "rice": 1.0},
    ),
    ConditionNutritionRule(
        condition_code="diabetes",
        label="diabetes",
        severity=Severity.HIGH,
        calorie_adjustment=CalorieAdjustment(
            delta_kcal=-300.0, reason="reduced energy for glycaemic control"
        ),
        macro_ranges=(MacroRange(Macro.CARBS, min_pct=40.0, max_pct=50.0),),
        excluded_ingredient_tags=frozenset({"refined_sugar", "sweetened_beverage"}),
        preferred_ingredient_tags={"whole_grain": 5.0, "legume": 3.0, "leafy_green": 3.0},
    ),
    ConditionNutritionRule(
        condition_code="heart_disease",
        label="heart disease",
        severity=Severity.HIGH,
        calorie_adjustment=CalorieAdjustment(
            delta_kcal=-150.0, reason="lighter energy load for cardiac patients"
        ),
        macro_ranges=(MacroRange(Macro.FAT, min_pct=20.0, max_pct=25.0),),
        micronutrient_caps={"sodium": 1500.0},
        excluded_ingredient_tags=frozenset({"trans_fat", "processed_meat"}),
        preferred_ingredient_tags={"oily_fish": 5.0, "whole_grain": 3.0},
    ),
    ConditionNutritionRule(
        condition_code="hypertension",
        label="hypertension",
        severity=Severity.HIGH,
        calorie_adjustment=CalorieAdjustment(reason="sodium-restricted, energy unchanged"),
        micronutrient_caps={"sodium": 2000.0},
        excluded_ingredient_tags=frozenset({"pickled", "processed_meat"}),
        preferred_ingredient_tags={"leafy_green": 4.0, "low_fat_dairy": 3.0},
    ),
    ConditionNutritionRule(
        condition_code="gout",
        label="gout",
        severity=Severity.MODERATE,
        calorie_adjustment=CalorieAdjustment(
            delta_kcal=-150.0, reason="gradual weight reduction"
        ),
        macro_ranges=(MacroRange(Macro.CARBS, min_pct=45.0, max_pct=60.0),),
        excluded_ingredient_tags=frozenset({"organ_meat", "shellfish", "anchovy"}),
        preferred_ingredient_tags={"low_fat_dairy": 3.0, "cherry": 2.0},
    ),
    ConditionNutritionRule(
        condition_code="hyperlipidemia",
        label="hyperlipidemia",
        severity=Severity.MODERATE,
        calorie_adjustment=CalorieAdjustment(
            delta_kcal=-200.0, reason="reduced energy for lipid control"
        ),
        macro_ranges=(MacroRange(Macro.FAT, min_pct=20.0, max_pct=30.0),),
        excluded_ingredient_tags=frozenset({"trans_fat", "organ_meat"}),
        preferred_ingredient_tags={"oily_fish": 4.0, "oat": 4.0},
    ),
    ConditionNutritionRule(
        condition_code="obesity",
        label="obesity",
        severity=Severity.MODERATE,
        calorie_adjustment=CalorieAdjustment(
            delta_kcal=-500.0, reason="energy deficit for weight loss"
        ),
        macro_ranges=(
            MacroRange(Macro.PROTEIN, min_pct=20.0, max_pct=30.0),
            MacroRange(Macro.FAT, min_pct=20.0, max_pct=30.0),
        ),
        excluded_ingredient_tags=frozenset({"deep_fried"}),
        preferred_ingredient_tags={"leafy_green": 3.0, "lean_protein": 3.0},
    ),
)

_DEFAULT_ALIASES: dict[str, str] = {
    "kidney_disease": "ckd",
    "chronic_kidney_disease": "ckd",
    "cardiovascular_disease": "heart_disease",
    "high_blood_pressure": "hypertension",
    "dyslipidemia": "hyperlipidemia",
    "high_cholesterol": "hyperlipidemia",
    "diabetes_type1": "diabetes",
    "diabetes_type2": "diabetes",
    "overweight": "obesity",
}


def normalize_condition_code(value: str) -> str:
    """Normalize a condition code as entered by the host product."""
    return normalize_tag(value)


@dataclass(frozen=True)
class ConditionRuleCatalog:
    """Lookup of condition rules by code, with alias support."""

    rules: dict[str, ConditionNutritionRule]
    aliases: dict[str, str] = field(default_factory=dict)

    @classmethod
    def default(cls) -> "ConditionRuleCatalog":
        """Return the built-in catalog."""
        return cls(
            rules={rule.condition_code: rule for rule in _DEFAULT_RULES},
            aliases=dict(_DEFAULT_ALIASES),
        )

    @classmethod
    def from_json(
        cls, path: str | Path, base: "ConditionRuleCatalog | None" = None
    ) -> "ConditionRuleCatalog":
        """Load rules from a JSON file on top of a base catalog.

        Documents replace base rules with the same code and add new ones.
        """
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        document = CatalogDocument.model_validate(raw)
        resolved_base = base or cls.default()
        rules = dict(resolved_base.rules)
        aliases = dict(resolved_base.aliases)
        for rule_document in document.rules:
            rule = rule_document.to_rule()
            rules[rule.condition_code] = rule
            for alias in rule_document.aliases:
                aliases[normalize_condition_code(alias)] = rule.condition_code
        return cls(rules=rules, aliases=aliases)

    def resolve_code(self, code: str) -> str | None:
        """Return the catalog code for a raw condition code, if known."""
        normalized = normalize_condition_code(code)
        canonical = self.aliases.get(normalized, normalized)
        if canonical in self.rules:
            return canonical
        return None

    def get(self, code: str) -> ConditionNutritionRule | None:
        """Return the rule for a condition code or alias."""
        canonical = self.resolve_code(code)
        if canonical is None:
            return None
        return self.rules[canonical]

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and self.resolve_code(code) is not None

    def codes(self) -> list[str]:
        """Return all catalog codes, sorted."""
        return sorted(self.rules)


class MacroRangeDocument(BaseModel):
    """JSON form of a macro range."""

    macro: Macro
    min_pct: float | None = Field(default=None, ge=0, le=100)
    max_pct: float | None = Field(default=None, ge=0, le=100)
    min_g_per_kg: float | None = Field(default=None, ge=0)
    max_g_per_kg: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "MacroRangeDocument":
        has_pct = self.min_pct is not None and self.max_pct is not None
        has_per_kg = self.min_g_per_kg is not None and self.max_g_per_kg is not None
        if has_pct == has_per_kg:
            raise ValueError("set either min_pct/max_pct or min_g_per_kg/max_g_per_kg")
        low, high = (
            (self.min_pct, self.max_pct)
            if has_pct
            else (self.min_g_per_kg, self.max_g_per_kg)
        )
        if low > high:
            raise ValueError(f"{self.macro} range minimum exceeds maximum")
        return self


class RuleDocument(BaseModel):
    """JSON form of a condition rule."""

    condition_code: str = Field(min_length=1)
    label: str | None = None
    severity: Severity
    calorie_delta_kcal: float = 0.0
    calorie_kcal_per_standard_kg: float | None = None
    calorie_reason: str = ""
    macro_ranges: list[MacroRangeDocument] = Field(default_factory=list)
    micronutrient_caps: dict[str, float] = Field(default_factory=dict)
    excluded_ingredient_tags: list[str] = Field(default_factory=list)
    preferred_ingredient_tags: dict[str, float] = Field(default_factory=dict)
    aliases: list[str] = Field(default_factory=list)

    def to_rule(self) -> ConditionNutritionRule:
        """Convert the document into a domain rule."""
        code = normalize_condition_code(self.condition_code)
        return ConditionNutritionRule(
            condition_code=code,
            label=self.label or code.replace("_", " "),
            severity=self.severity,
            calorie_adjustment=CalorieAdjustment(
                delta_kcal=self.calorie_delta_kcal,
                kcal_per_standard_kg=self.calorie_kcal_per_standard_kg,
                reason=self.calorie_reason,
            ),
            macro_ranges=tuple(
                MacroRange(
                    macro=item.macro,
                    min_pct=item.min_pct,
                    max_pct=item.max_pct,
                    min_g_per_kg=item.min_g_per_kg,
                    max_g_per_kg=item.max_g_per_kg,
                )
                for item in self.macro_ranges
            ),
            micronutrient_caps={
                nutrient.lower(): cap for nutrient, cap in self.micronutrient_caps.items()
            },
            excluded_ingredient_tags=frozenset(
                normalize_tag(tag) for tag in self.excluded_ingredient_tags
            ),
            preferred_ingredient_tags={
                normalize_tag(tag): weight
                for tag, weight in self.preferred_ingredient_tags.items()
            },
        )


class CatalogDocument(BaseModel):
    """Top-level JSON catalog document."""

    rules: list[RuleDocument]
