"""
Detect named conditions from combinations of abnormal lab parameters.

Each registry entry is a keyword signature for one condition. A condition
is suggested when at least two abnormal parameters match its signature;
a single out-of-range value is never enough. Works without any LLM.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from api.condition_models import (
    ConditionSuggestion,
    Confidence,
    Parameter,
    SuggestionSource,
)
from extraction.severity import calculate_severity, severity_level

logger = logging.getLogger(__name__)

MIN_MATCHING_PARAMETERS = 2


@dataclass(frozen=True)
class ParameterCombination:
    parameters: tuple[str, ...]
    condition: str
    confidence: Confidence
    description: str


@dataclass(frozen=True)
class CombinationMatch:
    combination: ParameterCombination
    matching_parameters: tuple[Parameter, ...]
    severity: float


PARAMETER_COMBINATIONS: tuple[ParameterCombination, ...] = (
    ParameterCombination(
        parameters=("glucose", "fasting glucose", "blood sugar", "hba1c", "glycated hemoglobin"),
        condition="Diabetes",
        confidence=Confidence.HIGH,
        description="Elevated glucose and HbA1c indicate diabetes",
    ),
    ParameterCombination(
        parameters=("cholesterol", "ldl", "triglycerides", "hdl"),
        condition="Hyperlipidemia",
        confidence=Confidence.HIGH,
        description="Abnormal lipid profile indicates hyperlipidemia",
    ),
    ParameterCombination(
        parameters=("hemoglobin", "rbc", "red blood cell", "hematocrit"),
        condition="Anemia",
        confidence=Confidence.HIGH,
        description="Low hemoglobin and RBC count indicate anemia",
    ),
    ParameterCombination(
        parameters=("tsh", "t3", "t4", "thyroid"),
        condition="Thyroid Disorder",
        confidence=Confidence.HIGH,
        description="Abnormal thyroid function tests",
    ),
    ParameterCombination(
        parameters=("creatinine", "bun", "urea", "egfr"),
        condition="Kidney Disease",
        confidence=Confidence.HIGH,
        description="Abnormal kidney function markers",
    ),
    ParameterCombination(
        parameters=("alt", "ast", "bilirubin", "liver"),
        condition="Liver Disease",
        confidence=Confidence.HIGH,
        description="Abnormal liver function tests",
    ),
    ParameterCombination(
        parameters=("calcium", "vitamin d", "phosphorus"),
        condition="Bone Disorder",
        confidence=Confidence.MEDIUM,
        description="Abnormal bone metabolism markers",
    ),
    ParameterCombination(
        parameters=("sodium", "potassium", "chloride"),
        condition="Electrolyte Imbalance",
        confidence=Confidence.MEDIUM,
        description="Abnormal electrolyte levels",
    ),
)


def _matches(param_name: str, keywords: Iterable[str]) -> bool:
    """Case-insensitive substring containment in either direction."""
    name = param_name.strip().lower()
    if not name:
        return False
    for keyword in keywords:
        kw = keyword.lower()
        if kw in name or name in kw:
            return True
    return False


def identify_parameter_combinations(
    parameters: Iterable[Parameter],
    registry: Iterable[ParameterCombination] = PARAMETER_COMBINATIONS,
) -> list[CombinationMatch]:
    """Registry entries matched by two or more abnormal parameters, most severe first."""
    abnormal = [p for p in parameters if p.is_abnormal]
    matches: list[CombinationMatch] = []

    for combination in registry:
        matching = tuple(p for p in abnormal if _matches(p.name, combination.parameters))
        if len(matching) < MIN_MATCHING_PARAMETERS:
            continue
        severity = sum(calculate_severity(p.value, p.normal_range) for p in matching) / len(matching)
        matches.append(
            CombinationMatch(
                combination=combination,
                matching_parameters=matching,
                severity=severity,
            )
        )

    matches.sort(key=lambda m: m.severity, reverse=True)
    return matches


def _format_value(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def format_evidence(param: Parameter) -> str:
    """Evidence line "<name>: <value> <unit>" for a matched parameter."""
    return f"{param.name}: {_format_value(param.value)} {param.unit or ''}".rstrip()


def detect_combinations(parameters: Iterable[Parameter]) -> list[ConditionSuggestion]:
    """Suggest conditions from the combination registry alone."""
    suggestions = [
        ConditionSuggestion(
            condition=match.combination.condition,
            confidence=match.combination.confidence,
            source=SuggestionSource.PARAMETER_ANALYSIS,
            evidence=[format_evidence(p) for p in match.matching_parameters],
            reasoning=match.combination.description,
            severity=severity_level(match.severity),
        )
        for match in identify_parameter_combinations(parameters)
    ]
    if suggestions:
        logger.debug(
            "Combination detector matched %d condition(s): %s",
            len(suggestions),
            ", ".join(s.condition for s in suggestions),
        )
    return suggestions
