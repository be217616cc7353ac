"""
LLM-backed condition suggestions.

The LLM is advisory only: every call here is bounded by a timeout and any
failure (transport error, timeout, unparsable reply) degrades to an empty
list. Locally detected combinations are merged in afterwards so the
deterministic result survives an LLM outage.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional, Protocol

from api.condition_models import (
    ConditionSuggestion,
    ExistingConditionLike,
    MemberInfo,
    Parameter,
    SuggestionSource,
)
from conditions.combinations import detect_combinations, identify_parameter_combinations
from llm.prompt_engine import PromptEngine
from llm.response_parser import parse_condition_payload

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
_MAX_TOKENS = 1500
_TEMPERATURE = 0.2


class CompletionClient(Protocol):
    """Anything with LLMClient's async text-completion signature."""

    async def call(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = ...,
        temperature: float = ...,
    ): ...


async def _ask(
    client: CompletionClient,
    user_prompt: str,
    source: SuggestionSource,
    default_evidence: list[str],
    timeout_seconds: float,
) -> list[ConditionSuggestion]:
    engine = PromptEngine()
    try:
        response = await asyncio.wait_for(
            client.call(
                system_prompt=engine.build_system_prompt(),
                user_prompt=user_prompt,
                max_tokens=_MAX_TOKENS,
                temperature=_TEMPERATURE,
            ),
            timeout=timeout_seconds,
        )
        suggestions = parse_condition_payload(
            response.text_content, source, default_evidence
        )
    except asyncio.TimeoutError:
        logger.warning(
            "LLM condition query (%s) timed out after %.1fs", source.value, timeout_seconds
        )
        return []
    except Exception:
        logger.exception("LLM condition query (%s) failed", source.value)
        return []

    logger.info("LLM condition query (%s) returned %d suggestion(s)", source.value, len(suggestions))
    return suggestions


async def query_oracle_for_parameters(
    client: Optional[CompletionClient],
    parameters: list[Parameter],
    member_info: Optional[MemberInfo] = None,
    existing_conditions: Iterable[ExistingConditionLike] = (),
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> list[ConditionSuggestion]:
    """Ask the LLM for conditions supported by abnormal parameters.

    Returns [] without calling when there is no client or no parameters.
    """
    if client is None or not parameters:
        return []
    prompt = PromptEngine().build_parameter_prompt(
        parameters,
        member_info,
        list(existing_conditions),
        identify_parameter_combinations(parameters),
    )
    return await _ask(client, prompt, SuggestionSource.PARAMETER_ANALYSIS, [], timeout_seconds)


async def query_oracle_for_report_types(
    client: Optional[CompletionClient],
    report_types: list[str],
    member_info: Optional[MemberInfo] = None,
    existing_conditions: Iterable[ExistingConditionLike] = (),
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> list[ConditionSuggestion]:
    """Ask the LLM which conditions a set of report types screens for.

    Entries the LLM returns without an evidence list cite all report types.
    """
    if client is None or not report_types:
        return []
    prompt = PromptEngine().build_report_type_prompt(
        report_types, member_info, list(existing_conditions)
    )
    return await _ask(
        client,
        prompt,
        SuggestionSource.REPORT_TYPE,
        [", ".join(report_types)],
        timeout_seconds,
    )


def merge_suggestions(
    oracle: Iterable[ConditionSuggestion],
    local: Iterable[ConditionSuggestion],
) -> list[ConditionSuggestion]:
    """LLM suggestions first; a local one is added only if its name is new."""
    merged = list(oracle)
    taken = {s.condition.strip().lower() for s in merged}
    merged.extend(s for s in local if s.condition.strip().lower() not in taken)
    return merged


async def suggest_conditions_for_parameters(
    client: Optional[CompletionClient],
    parameters: list[Parameter],
    member_info: Optional[MemberInfo] = None,
    existing_conditions: Iterable[ExistingConditionLike] = (),
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> list[ConditionSuggestion]:
    """LLM suggestions for abnormal parameters merged with local combinations."""
    abnormal = [p for p in parameters if p.is_abnormal]
    oracle = await query_oracle_for_parameters(
        client, abnormal, member_info, existing_conditions, timeout_seconds
    )
    return merge_suggestions(oracle, detect_combinations(abnormal))
