"""Pydantic models for condition suggestion, validation and filtering."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SuggestionSource(str, Enum):
    PARAMETER_ANALYSIS = "parameter_analysis"
    REPORT_TYPE = "report_type"
    EXPLICIT_MENTION = "explicit_mention"
    AI_ANALYSIS = "ai_analysis"


class SeverityLevel(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    FLUCTUATING = "fluctuating"


class Parameter(BaseModel):
    """A single lab result supplied for analysis. Never persisted here."""

    name: str
    value: Union[float, int, str]
    unit: Optional[str] = None
    normal_range: Optional[str] = None
    is_abnormal: Optional[bool] = None
    report_name: Optional[str] = None
    report_date: Optional[datetime] = None


class ConditionSuggestion(BaseModel):
    condition: str
    confidence: Confidence
    source: SuggestionSource
    evidence: list[str] = Field(default_factory=list)
    reasoning: Optional[str] = None
    severity: Optional[SeverityLevel] = None


class FilteredCondition(ConditionSuggestion):
    normalized_name: str
    validation_score: int = Field(ge=0, le=100)
    should_auto_add: bool = False


class ValidationResult(BaseModel):
    is_valid: bool = True
    normalized_name: str = ""
    reasons: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ExistingCondition(BaseModel):
    """A condition already on the member's profile."""

    condition: Optional[str] = None
    source: Optional[str] = None
    date: Optional[datetime] = None


ExistingConditionLike = Union[str, ExistingCondition]


class MemberInfo(BaseModel):
    age: Optional[int] = Field(default=None, ge=0, le=150)
    gender: Optional[str] = None


class ConditionContext(BaseModel):
    age: Optional[int] = Field(default=None, ge=0, le=150)
    gender: Optional[str] = None
    existing_conditions: list[ExistingConditionLike] = Field(default_factory=list)
    auto_add_threshold: int = Field(default=85, ge=0, le=100)


class SeparatedConditions(BaseModel):
    auto_add: list[FilteredCondition] = Field(default_factory=list)
    manual_review: list[FilteredCondition] = Field(default_factory=list)


class TrendPoint(BaseModel):
    date: datetime
    value: float


class ParameterTrend(BaseModel):
    parameter_name: str
    trend: TrendDirection
    values: list[TrendPoint] = Field(default_factory=list)


class ReportRecord(BaseModel):
    """The subset of a stored report the engine reads."""

    type: Optional[str] = None
    document_type: Optional[str] = None
    test_name: Optional[str] = None
    name: Optional[str] = None
    conditions: list[str] = Field(default_factory=list)


# --- Requests / responses ---


class DetectCombinationsRequest(BaseModel):
    """Request body for POST /conditions/detect."""

    parameters: list[Parameter] = Field(default_factory=list)


class ValidateConditionRequest(BaseModel):
    """Request body for POST /conditions/validate."""

    condition: str
    context: ConditionContext = Field(default_factory=ConditionContext)


class FilterRequest(BaseModel):
    """Request body for POST /conditions/filter."""

    suggestions: list[ConditionSuggestion] = Field(default_factory=list)
    context: ConditionContext = Field(default_factory=ConditionContext)


class FilterResponse(BaseModel):
    filtered: list[FilteredCondition] = Field(default_factory=list)
    auto_add: list[FilteredCondition] = Field(default_factory=list)
    manual_review: list[FilteredCondition] = Field(default_factory=list)


class TrendsRequest(BaseModel):
    """Request body for POST /parameters/trends."""

    parameters: list[Parameter] = Field(default_factory=list)


class ConditionAnalysisRequest(BaseModel):
    """Request body for POST /conditions/analyze."""

    parameters: list[Parameter] = Field(default_factory=list)
    report_types: list[str] = Field(default_factory=list)
    reports: list[ReportRecord] = Field(default_factory=list)
    member: MemberInfo = Field(default_factory=MemberInfo)
    date_of_birth: Optional[datetime] = None
    existing_conditions: list[ExistingConditionLike] = Field(default_factory=list)
    auto_add_threshold: Optional[int] = Field(default=None, ge=0, le=100)
    use_oracle: bool = True


class ConditionAnalysisResult(BaseModel):
    auto_add: list[FilteredCondition] = Field(default_factory=list)
    manual_review: list[FilteredCondition] = Field(default_factory=list)
    trends: list[ParameterTrend] = Field(default_factory=list)
    report_types: list[str] = Field(default_factory=list)
    total_parameters: int = 0
    abnormal_parameters: int = 0
    candidate_count: int = 0
    oracle_consulted: bool = False


# --- Settings ---


class LLMProviderEnum(str, Enum):
    CLAUDE = "claude"
    OPENAI = "openai"
    BEDROCK = "bedrock"


class EngineSettings(BaseModel):
    """Engine settings, read from the environment on every call."""

    llm_provider: LLMProviderEnum = LLMProviderEnum.CLAUDE
    claude_model: Optional[str] = None
    openai_model: Optional[str] = None
    aws_region: str = "us-east-1"
    oracle_enabled: bool = True
    oracle_timeout_seconds: float = Field(default=30.0, gt=0)
    auto_add_threshold: int = Field(default=85, ge=0, le=100)
