"""Aggregation of health conditions into one set of nutrition targets."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from statistics import fmean

from nutrition_planner.domain.errors import ConstraintConflictWarning
from nutrition_planner.domain.profiles import HealthProfile
from nutrition_planner.domain.recipes import normalize_tag
from nutrition_planner.domain.rules import ConditionNutritionRule, Macro, MacroRange
from nutrition_planner.domain.targets import (
    AdjustmentKind,
    AppliedAdjustment,
    MacroTarget,
    NutritionTargetProfile,
)
from nutrition_planner.services.calories import (
    CalorieBudgetCalculator,
    body_mass_index,
    calorie_floor,
    reference_weight,
    sanitize_profile,
)
from nutrition_planner.services.catalog import ConditionRuleCatalog

OBESITY_BMI_THRESHOLD = 25.0
OBESITY_CODE = "obesity"

DEFAULT_MACRO_RANGES: dict[Macro, MacroRange] = {
    Macro.CARBS: MacroRange(Macro.CARBS, min_pct=45.0, max_pct=65.0),
    Macro.PROTEIN: MacroRange(Macro.PROTEIN, min_pct=10.0, max_pct=35.0),
    Macro.FAT: MacroRange(Macro.FAT, min_pct=20.0, max_pct=35.0),
}

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConditionAggregator:
    """Merges condition rules with a "most restrictive wins" policy."""

    catalog: ConditionRuleCatalog
    calculator: CalorieBudgetCalculator = field(default_factory=CalorieBudgetCalculator)

    def active_conditions(self, profile: HealthProfile) -> list[str]:
        """Return catalog codes that apply to the profile, sorted."""
        codes: set[str] = set()
        for disease in profile.diseases:
            code = self.catalog.resolve_code(disease)
            if code is None:
                _logger.debug("No nutrition rule for condition %s", disease)
                continue
            codes.add(code)
        bmi = body_mass_index(profile)
        if (
            bmi is not None
            and bmi >= OBESITY_BMI_THRESHOLD
            and OBESITY_CODE in self.catalog.rules
        ):
            codes.add(OBESITY_CODE)
        return sorted(codes)

    def ordered_rules(self, profile: HealthProfile) -> list[ConditionNutritionRule]:
        """Return active rules by severity descending, then code ascending."""
        return self._ordered(self.active_conditions(profile))

    def aggregate(self, profile: HealthProfile) -> NutritionTargetProfile:
        """Build the nutrition target profile for a health profile."""
        profile = sanitize_profile(profile)
        rules = self.ordered_rules(profile)
        adjustments: list[AppliedAdjustment] = []
        weight = reference_weight(profile)

        base = self.calculator.base(profile)
        if base.source == "override":
            adjustments.append(
                AppliedAdjustment(
                    condition_code="override",
                    delta=0.0,
                    reason=(
                        f"daily goal of {base.calories:.0f} kcal replaces "
                        "the computed base"
                    ),
                    kind=AdjustmentKind.OVERRIDE,
                )
            )

        delta = 0.0
        for rule in rules:
            resolved = _resolve_calorie_delta(rule, weight)
            if resolved is None:
                adjustments.append(
                    AppliedAdjustment(
                        condition_code=rule.condition_code,
                        delta=0.0,
                        reason="per-kg calorie formula skipped: body size unknown",
                        kind=AdjustmentKind.SKIPPED,
                    )
                )
                continue
            delta += resolved
            adjustments.append(
                AppliedAdjustment(
                    condition_code=rule.condition_code,
                    delta=resolved,
                    reason=rule.calorie_adjustment.reason or f"{rule.label} adjustment",
                )
            )

        floor = calorie_floor(profile)
        unclamped = round(base.calories + delta)
        total = self.calculator.total(profile, base.calories, delta)
        if total > unclamped:
            adjustments.append(
                AppliedAdjustment(
                    condition_code="floor",
                    delta=float(total - unclamped),
                    reason=f"raised to the {floor} kcal minimum",
                    kind=AdjustmentKind.FLOOR,
                )
            )

        return _assemble(
            rules,
            total=total,
            weight_kg=weight,
            allergies=profile.allergies,
            adjustments=adjustments,
            base_calories=base.calories,
            floor=floor,
        )

    def aggregate_household(
        self, profiles: Sequence[HealthProfile]
    ) -> NutritionTargetProfile:
        """Build one shared target for several people eating the same meals.

        Calories are the average of each member's own total. Conditions,
        caps, exclusions and allergies from every member all apply.
        """
        if not profiles:
            raise ValueError("a household needs at least one profile")
        members = [sanitize_profile(profile) for profile in profiles]
        member_targets = [self.aggregate(member) for member in members]
        total = round(fmean(targets.total_calories for targets in member_targets))
        codes = {code for targets in member_targets for code in targets.active_conditions}
        weights = [
            weight
            for weight in (reference_weight(member) for member in members)
            if weight is not None
        ]
        allergies = frozenset(
            allergy for member in members for allergy in member.allergies
        )
        adjustments = [
            AppliedAdjustment(
                condition_code="household",
                delta=0.0,
                reason=f"average of {len(members)} member targets ({total} kcal)",
                kind=AdjustmentKind.HOUSEHOLD,
            )
        ]
        _logger.info(
            "Household target for %s members: %s kcal, conditions=%s",
            len(members),
            total,
            sorted(codes),
        )
        return _assemble(
            self._ordered(codes),
            total=total,
            weight_kg=fmean(weights) if weights else None,
            allergies=allergies,
            adjustments=adjustments,
            base_calories=fmean(targets.base_calories for targets in member_targets),
            floor=min(targets.calorie_floor for targets in member_targets),
        )

    def _ordered(self, codes: Sequence[str] | set[str]) -> list[ConditionNutritionRule]:
        rules = [self.catalog.rules[code] for code in codes]
        return sorted(rules, key=lambda rule: (-rule.severity, rule.condition_code))


def _assemble(  # noqa: PLR0913
    rules: list[ConditionNutritionRule],
    *,
    total: int,
    weight_kg: float | None,
    allergies: frozenset[str],
    adjustments: list[AppliedAdjustment],
    base_calories: float,
    floor: int,
) -> NutritionTargetProfile:
    macro_targets, macro_sources = _merge_macro_ranges(
        rules, total, weight_kg, adjustments
    )
    caps, cap_sources = _merge_caps(rules)
    preferred, preferred_sources = _merge_preferences(rules)
    excluded = {normalize_tag(tag) for tag in allergies}
    for rule in rules:
        excluded.update(rule.excluded_ingredient_tags)

    return NutritionTargetProfile(
        total_calories=total,
        macro_targets=macro_targets,
        micronutrient_caps=caps,
        excluded_ingredients=frozenset(excluded),
        preferred_ingredients=preferred,
        applied_adjustments=tuple(adjustments),
        active_conditions=tuple(rule.condition_code for rule in rules),
        base_calories=round(base_calories, 1),
        calorie_floor=floor,
        cap_sources=cap_sources,
        preferred_sources=preferred_sources,
        macro_sources=macro_sources,
    )


def _resolve_calorie_delta(
    rule: ConditionNutritionRule, weight_kg: float | None
) -> float | None:
    adjustment = rule.calorie_adjustment
    if not adjustment.is_weight_based:
        return adjustment.delta_kcal
    if weight_kg is None:
        return None
    return round(adjustment.kcal_per_standard_kg * weight_kg, 1)


def _merge_macro_ranges(
    rules: list[ConditionNutritionRule],
    total_calories: int,
    weight_kg: float | None,
    adjustments: list[AppliedAdjustment],
) -> tuple[dict[Macro, MacroTarget], dict[Macro, tuple[str, ...]]]:
    targets: dict[Macro, MacroTarget] = {}
    sources: dict[Macro, tuple[str, ...]] = {}
    for macro in Macro:
        contributors: list[tuple[ConditionNutritionRule, tuple[float, float]]] = []
        for rule in rules:
            macro_range = rule.macro_range(macro)
            if macro_range is None:
                continue
            grams = macro_range.resolve_grams(total_calories, weight_kg)
            if grams is None:
                adjustments.append(
                    AppliedAdjustment(
                        condition_code=rule.condition_code,
                        delta=0.0,
                        reason=f"{macro} range skipped: body size unknown",
                        kind=AdjustmentKind.SKIPPED,
                    )
                )
                continue
            contributors.append((rule, grams))

        # contributors follow rule order, so the last one has the lowest severity
        while len(contributors) > 1:
            low = max(grams[0] for _, grams in contributors)
            high = min(grams[1] for _, grams in contributors)
            if low <= high:
                break
            dropped_rule, dropped = contributors.pop()
            conflict = ConstraintConflictWarning(
                dropped_rule.condition_code,
                macro,
                f"{macro} range {dropped[0]:.1f}-{dropped[1]:.1f} g from "
                f"{dropped_rule.condition_code} conflicts with higher-severity "
                "rules and was dropped",
            )
            _logger.warning("Constraint conflict: %s", conflict)
            adjustments.append(
                AppliedAdjustment(
                    condition_code=dropped_rule.condition_code,
                    delta=0.0,
                    reason=str(conflict),
                    kind=AdjustmentKind.CONFLICT,
                )
            )

        if contributors and contributors[0][1][0] <= contributors[0][1][1]:
            low = max(grams[0] for _, grams in contributors)
            high = min(grams[1] for _, grams in contributors)
            sources[macro] = tuple(rule.condition_code for rule, _ in contributors)
        else:
            low, high = DEFAULT_MACRO_RANGES[macro].resolve_grams(
                total_calories, weight_kg
            )
        targets[macro] = MacroTarget(min_g=round(low, 1), max_g=round(high, 1))
    return targets, sources


def _merge_caps(
    rules: list[ConditionNutritionRule],
) -> tuple[dict[str, float], dict[str, str]]:
    caps: dict[str, float] = {}
    sources: dict[str, str] = {}
    for rule in rules:
        for nutrient, cap in rule.micronutrient_caps.items():
            if nutrient not in caps or cap < caps[nutrient]:
                caps[nutrient] = cap
                sources[nutrient] = rule.condition_code
    return caps, sources


def _merge_preferences(
    rules: list[ConditionNutritionRule],
) -> tuple[dict[str, float], dict[str, tuple[str, ...]]]:
    weights: dict[str, float] = {}
    sources: dict[str, tuple[str, ...]] = {}
    for rule in rules:
        for tag, weight in rule.preferred_ingredient_tags.items():
            weights[tag] = weights.get(tag, 0.0) + weight
            sources[tag] = (*sources.get(tag, ()), rule.condition_code)
    return weights, sources
