"""
Member-level condition analysis.

Runs every stage for one member: flag abnormal parameters, gather
candidates (explicit report mentions, parameter combinations merged with
LLM suggestions, report-type suggestions), then validate, score, rank and
split them into auto-add and manual-review lists.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from api.condition_models import (
    ConditionAnalysisRequest,
    ConditionAnalysisResult,
    ConditionContext,
    MemberInfo,
)
from conditions.filtering import filter_conditions, separate_conditions
from conditions.scoring import DEFAULT_AUTO_ADD_THRESHOLD
from extraction.demographics import calculate_age, normalize_gender
from extraction.reference_ranges import flag_abnormal
from extraction.report_types import collect_report_types, explicit_mentions
from extraction.trends import analyze_parameter_trends
from llm.oracle import (
    DEFAULT_TIMEOUT_SECONDS,
    CompletionClient,
    query_oracle_for_report_types,
    suggest_conditions_for_parameters,
)

logger = logging.getLogger(__name__)


def _member(request: ConditionAnalysisRequest) -> MemberInfo:
    age = request.member.age
    if age is None and request.date_of_birth is not None:
        age = calculate_age(request.date_of_birth)
    return MemberInfo(age=age, gender=normalize_gender(request.member.gender))


async def analyze_conditions(
    request: ConditionAnalysisRequest,
    client: Optional[CompletionClient] = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    default_threshold: int = DEFAULT_AUTO_ADD_THRESHOLD,
) -> ConditionAnalysisResult:
    """Suggest, filter and partition conditions for one member.

    LLM trouble never fails the analysis: the oracle queries fall back to
    empty lists and local combination detection still runs.
    """
    parameters = flag_abnormal(request.parameters)
    abnormal = [p for p in parameters if p.is_abnormal]
    report_types = collect_report_types(request.reports, request.report_types)
    member = _member(request)

    oracle_client = client if request.use_oracle else None
    parameter_suggestions, report_type_suggestions = await asyncio.gather(
        suggest_conditions_for_parameters(
            oracle_client, abnormal, member, request.existing_conditions, timeout_seconds
        ),
        query_oracle_for_report_types(
            oracle_client, report_types, member, request.existing_conditions, timeout_seconds
        ),
    )

    candidates = [
        *explicit_mentions(request.reports),
        *parameter_suggestions,
        *report_type_suggestions,
    ]

    threshold = request.auto_add_threshold
    if threshold is None:
        threshold = default_threshold
    context = ConditionContext(
        age=member.age,
        gender=member.gender,
        existing_conditions=request.existing_conditions,
        auto_add_threshold=threshold,
    )
    separated = separate_conditions(filter_conditions(candidates, context))

    logger.info(
        "Condition analysis: %d parameter(s), %d abnormal, %d report type(s), "
        "%d candidate(s) -> %d auto-add, %d for review",
        len(parameters),
        len(abnormal),
        len(report_types),
        len(candidates),
        len(separated.auto_add),
        len(separated.manual_review),
    )

    return ConditionAnalysisResult(
        auto_add=separated.auto_add,
        manual_review=separated.manual_review,
        trends=analyze_parameter_trends(parameters),
        report_types=report_types,
        total_parameters=len(parameters),
        abnormal_parameters=len(abnormal),
        candidate_count=len(candidates),
        oracle_consulted=oracle_client is not None and bool(abnormal or report_types),
    )
