"""
Parse the LLM condition-suggestion reply.

Post-response handling:
1. Extract the first balanced JSON object from the text (models often wrap
   it in prose or code fences)
2. Decode it and read the `conditions` array
3. Map each entry to a ConditionSuggestion, skipping unusable entries

Nothing here raises on a bad reply: an unusable payload yields [].
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from api.condition_models import (
    ConditionSuggestion,
    Confidence,
    SeverityLevel,
    SuggestionSource,
)

logger = logging.getLogger(__name__)


def extract_json_object(text: Optional[str]) -> Optional[str]:
    """Return the first balanced `{...}` fragment of text, or None.

    Braces inside JSON string literals (including escaped quotes) do not
    count toward the balance.
    """
    if not text:
        return None

    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def _as_enum(enum_cls, value: Any, default):
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            return default
    return default


def _parse_entry(
    entry: Any,
    source: SuggestionSource,
    default_evidence: list[str],
) -> Optional[ConditionSuggestion]:
    if not isinstance(entry, dict):
        return None
    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        return None

    evidence = entry.get("evidence")
    if isinstance(evidence, list):
        evidence = [str(e) for e in evidence if e is not None and str(e).strip()]
    else:
        evidence = list(default_evidence)

    reasoning = entry.get("reasoning")
    if not isinstance(reasoning, str):
        reasoning = None

    return ConditionSuggestion(
        condition=name.strip(),
        confidence=_as_enum(Confidence, entry.get("confidence"), Confidence.MEDIUM),
        source=source,
        evidence=evidence,
        reasoning=reasoning,
        severity=_as_enum(SeverityLevel, entry.get("severity"), SeverityLevel.MILD),
    )


def parse_condition_payload(
    text: Optional[str],
    source: SuggestionSource,
    default_evidence: Optional[list[str]] = None,
) -> list[ConditionSuggestion]:
    """Decode an LLM reply into suggestions tagged with `source`.

    Entries without a string `name` are skipped. Unknown confidence maps to
    medium, unknown severity to mild, non-list evidence to default_evidence.
    """
    fragment = extract_json_object(text)
    if fragment is None:
        logger.warning("LLM condition reply contained no JSON object")
        return []

    try:
        payload = json.loads(fragment)
    except json.JSONDecodeError as e:
        logger.warning("LLM condition reply was not valid JSON: %s", e)
        return []

    conditions = payload.get("conditions") if isinstance(payload, dict) else None
    if not isinstance(conditions, list):
        logger.warning("LLM condition reply had no conditions array")
        return []

    fallback = list(default_evidence or [])
    suggestions = []
    for entry in conditions:
        suggestion = _parse_entry(entry, source, fallback)
        if suggestion is not None:
            suggestions.append(suggestion)

    skipped = len(conditions) - len(suggestions)
    if skipped:
        logger.info("Skipped %d malformed condition entr(ies) in LLM reply", skipped)
    return suggestions
