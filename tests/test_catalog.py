"""Tests for the condition rule catalog."""

import json

import pytest
from pydantic import ValidationError

from nutrition_planner.domain.rules import Macro, Severity
from nutrition_planner.services.catalog import ConditionRuleCatalog


def _write(tmp_path, document: dict) -> str:
    path = tmp_path / "rules.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return str(path)


def test_default_catalog_resolves_aliases(catalog) -> None:
    assert catalog.resolve_code("Chronic Kidney Disease") == "ckd"
    assert catalog.resolve_code("diabetes_type2") == "diabetes"
    assert catalog.resolve_code("unknown_condition") is None
    assert "high_blood_pressure" in catalog
    assert catalog.get("kidney_disease") is catalog.rules["ckd"]


def test_json_document_overrides_and_extends(tmp_path) -> None:
    path = _write(
        tmp_path,
        {
            "rules": [
                {
                    "condition_code": "hypertension",
                    "severity": 4,
                    "micronutrient_caps": {"Sodium": 1200},
                },
                {
                    "condition_code": "Celiac Disease",
                    "label": "coeliac disease",
                    "severity": 3,
                    "excluded_ingredient_tags": ["Wheat Flour", "barley"],
                    "preferred_ingredient_tags": {"rice": 2},
                    "macro_ranges": [{"macro": "fat", "min_pct": 20, "max_pct": 35}],
                    "aliases": ["coeliac"],
                },
            ]
        },
    )

    loaded = ConditionRuleCatalog.from_json(path)

    hypertension = loaded.rules["hypertension"]
    assert hypertension.severity == Severity.CRITICAL
    assert hypertension.micronutrient_caps == {"sodium": 1200}
    celiac = loaded.get("coeliac")
    assert celiac is not None
    assert celiac.condition_code == "celiac_disease"
    assert celiac.excluded_ingredient_tags == frozenset({"wheat_flour", "barley"})
    assert celiac.macro_range(Macro.FAT).max_pct == 35
    assert "ckd" in loaded


@pytest.mark.parametrize(
    "rule",
    [
        {"condition_code": "x", "severity": 9},
        {"condition_code": "", "severity": 1},
        {
            "condition_code": "x",
            "severity": 1,
            "macro_ranges": [{"macro": "carbs", "min_pct": 60, "max_pct": 40}],
        },
        {
            "condition_code": "x",
            "severity": 1,
            "macro_ranges": [{"macro": "carbs", "min_pct": 40}],
        },
    ],
)
def test_invalid_documents_are_rejected(tmp_path, rule) -> None:
    path = _write(tmp_path, {"rules": [rule]})

    with pytest.raises(ValidationError):
        ConditionRuleCatalog.from_json(path)


def test_codes_are_sorted(catalog) -> None:
    assert catalog.codes() == [
        "ckd",
        "diabetes",
        "gout",
        "heart_disease",
        "hyperlipidemia",
        "hypertension",
        "obesity",
    ]
