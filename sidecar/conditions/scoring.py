"""Validation score (0-100) and auto-add decision for a condition suggestion."""

from __future__ import annotations

from typing import Any

from api.condition_models import (
    ConditionSuggestion,
    Confidence,
    SeverityLevel,
    SuggestionSource,
)
from conditions.validator import validate_condition

DEFAULT_AUTO_ADD_THRESHOLD = 85

CONFIDENCE_POINTS = {
    Confidence.HIGH: 50,
    Confidence.MEDIUM: 30,
    Confidence.LOW: 10,
}

# Named on a report > pattern-matched from labs > LLM > inferred from report type
SOURCE_POINTS = {
    SuggestionSource.EXPLICIT_MENTION: 30,
    SuggestionSource.PARAMETER_ANALYSIS: 25,
    SuggestionSource.AI_ANALYSIS: 20,
    SuggestionSource.REPORT_TYPE: 15,
}

SEVERITY_POINTS = {
    SeverityLevel.SEVERE: 10,
    SeverityLevel.MODERATE: 5,
    SeverityLevel.MILD: 2,
}

POINTS_PER_EVIDENCE = 5
MAX_EVIDENCE_POINTS = 20
WARNING_PENALTY = 5


def calculate_validation_score(suggestion: ConditionSuggestion, context: Any = None) -> int:
    """Score a suggestion; any suggestion that fails validation scores 0."""
    score = 0
    score += CONFIDENCE_POINTS.get(suggestion.confidence, 0)
    score += SOURCE_POINTS.get(suggestion.source, 0)
    score += min(len(suggestion.evidence) * POINTS_PER_EVIDENCE, MAX_EVIDENCE_POINTS)
    if suggestion.severity is not None:
        score += SEVERITY_POINTS.get(suggestion.severity, 0)

    validation = validate_condition(suggestion.condition, context)
    if not validation.is_valid:
        return 0

    score -= WARNING_PENALTY * len(validation.warnings)
    return max(0, min(100, score))


def should_auto_add(
    suggestion: ConditionSuggestion,
    score: int,
    threshold: int = DEFAULT_AUTO_ADD_THRESHOLD,
) -> bool:
    """High confidence, score at threshold, and two pieces of evidence.

    Explicit mentions need only one piece of evidence.
    """
    if suggestion.confidence != Confidence.HIGH:
        return False
    if score < threshold:
        return False
    if len(suggestion.evidence) < 2:
        return (
            suggestion.source == SuggestionSource.EXPLICIT_MENTION
            and len(suggestion.evidence) >= 1
        )
    return True
