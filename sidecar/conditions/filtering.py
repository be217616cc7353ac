"""Filter, rank and partition condition suggestions."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from api.condition_models import (
    ConditionSuggestion,
    FilteredCondition,
    SeparatedConditions,
)
from conditions.scoring import (
    DEFAULT_AUTO_ADD_THRESHOLD,
    calculate_validation_score,
    should_auto_add,
)
from conditions.validator import normalize_condition_name, validate_condition

logger = logging.getLogger(__name__)

MIN_VALIDATION_SCORE = 30


def _auto_add_threshold(context: Any) -> int:
    if context is None:
        return DEFAULT_AUTO_ADD_THRESHOLD
    if isinstance(context, dict):
        value = context.get("auto_add_threshold")
    else:
        value = getattr(context, "auto_add_threshold", None)
    return DEFAULT_AUTO_ADD_THRESHOLD if value is None else value


def filter_conditions(
    suggestions: Iterable[ConditionSuggestion],
    context: Any = None,
) -> list[FilteredCondition]:
    """Drop invalid, low-scoring and repeated suggestions; rank the rest.

    Repeats within the batch are exact (case-insensitive) matches on the
    normalized name, first one wins. Near-matches against the member's
    existing conditions are only a scoring warning, applied by the validator.
    """
    threshold = _auto_add_threshold(context)
    kept: list[FilteredCondition] = []
    seen: set[str] = set()
    dropped = 0

    for suggestion in suggestions:
        validation = validate_condition(suggestion.condition, context)
        if not validation.is_valid:
            dropped += 1
            continue

        score = calculate_validation_score(suggestion, context)
        if score < MIN_VALIDATION_SCORE:
            dropped += 1
            continue

        normalized_name = normalize_condition_name(suggestion.condition)
        key = normalized_name.lower()
        if key in seen:
            dropped += 1
            continue
        seen.add(key)

        kept.append(
            FilteredCondition(
                **suggestion.model_dump(),
                normalized_name=normalized_name,
                validation_score=score,
                should_auto_add=should_auto_add(suggestion, score, threshold),
            )
        )

    kept.sort(key=lambda c: c.validation_score, reverse=True)
    logger.info("Condition filter kept %d, dropped %d", len(kept), dropped)
    return kept


def separate_conditions(filtered: Iterable[FilteredCondition]) -> SeparatedConditions:
    """Split into conditions to attach automatically and ones to confirm."""
    result = SeparatedConditions()
    for condition in filtered:
        if condition.should_auto_add:
            result.auto_add.append(condition)
        else:
            result.manual_review.append(condition)
    return result
