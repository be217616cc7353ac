import logging

from fastapi import APIRouter, Body, Request

from api import settings_store
from api.condition_models import (
    ConditionAnalysisRequest,
    ConditionAnalysisResult,
    ConditionSuggestion,
    DetectCombinationsRequest,
    FilterRequest,
    FilterResponse,
    ParameterTrend,
    TrendsRequest,
    ValidateConditionRequest,
    ValidationResult,
)
from api.rate_limit import limiter, ANALYZE_RATE_LIMIT
from conditions import (
    detect_combinations,
    filter_conditions,
    separate_conditions,
    validate_condition,
)
from conditions.pipeline import analyze_conditions
from extraction.demographics import normalize_gender
from extraction.reference_ranges import flag_abnormal
from extraction.trends import analyze_parameter_trends

_logger = logging.getLogger(__name__)

router = APIRouter()


def _normalized_context(context):
    return context.model_copy(update={"gender": normalize_gender(context.gender)})


@router.get("/health")
async def health_check():
    settings = settings_store.get_settings()
    return {
        "status": "ok",
        "llm_provider": settings.llm_provider.value,
        "oracle_enabled": settings.oracle_enabled,
    }


@router.post("/conditions/detect", response_model=list[ConditionSuggestion])
async def detect_conditions(body: DetectCombinationsRequest = Body(...)):
    """Suggest conditions from abnormal-parameter combinations (no LLM)."""
    return detect_combinations(flag_abnormal(body.parameters))


@router.post("/conditions/validate", response_model=ValidationResult)
async def validate(body: ValidateConditionRequest = Body(...)):
    return validate_condition(body.condition, _normalized_context(body.context))


@router.post("/conditions/filter", response_model=FilterResponse)
async def filter_suggestions(body: FilterRequest = Body(...)):
    """Validate, score and rank suggestions, then split auto-add from review."""
    filtered = filter_conditions(body.suggestions, _normalized_context(body.context))
    separated = separate_conditions(filtered)
    return FilterResponse(
        filtered=filtered,
        auto_add=separated.auto_add,
        manual_review=separated.manual_review,
    )


@router.post("/conditions/analyze", response_model=ConditionAnalysisResult)
@limiter.limit(ANALYZE_RATE_LIMIT)
async def analyze(request: Request, body: ConditionAnalysisRequest = Body(...)):
    """Full member analysis: local detection + LLM suggestions -> filter -> partition.

    LLM failures degrade to local detection; they never fail the request.
    """
    settings = settings_store.get_settings()
    client = settings_store.build_llm_client(settings) if body.use_oracle else None
    if body.use_oracle and client is None:
        _logger.info("LLM oracle unavailable, using local combination detection only")
    return await analyze_conditions(
        body,
        client=client,
        timeout_seconds=settings.oracle_timeout_seconds,
        default_threshold=settings.auto_add_threshold,
    )


@router.post("/parameters/trends", response_model=list[ParameterTrend])
async def parameter_trends(body: TrendsRequest = Body(...)):
    return analyze_parameter_trends(body.parameters)
