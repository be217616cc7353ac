import asyncio
from datetime import datetime

from api.condition_models import (
    ConditionAnalysisRequest,
    MemberInfo,
    Parameter,
    ReportRecord,
    SuggestionSource,
    TrendDirection,
)
from conditions.pipeline import analyze_conditions

PARAMETER_REPLY = {
    "conditions": [
        {
            "name": "Diabetes",
            "confidence": "high",
            "evidence": ["Fasting Glucose", "HbA1c"],
            "reasoning": "Raised glucose and HbA1c.",
            "severity": "severe",
        },
        {"name": "PCOS", "confidence": "medium", "evidence": ["HbA1c"], "severity": "mild"},
    ]
}

REPORT_TYPE_REPLY = {
    "conditions": [
        {
            "name": "Hyperlipidemia",
            "confidence": "high",
            "evidence": ["Lipid Profile"],
            "reasoning": "Lipid profile tests for lipid disorders.",
            "severity": "moderate",
        },
        {"name": "Screening Result", "confidence": "high"},
    ]
}


def _route_reply(user_prompt: str) -> dict:
    if "## Report Types" in user_prompt:
        return REPORT_TYPE_REPLY
    return PARAMETER_REPLY


def _request(**overrides) -> ConditionAnalysisRequest:
    fields = dict(
        parameters=[
            Parameter(name="Glucose", value=180, unit="mg/dL", normal_range="70-100",
                      report_date=datetime(2024, 1, 10)),
            Parameter(name="Glucose", value=150, unit="mg/dL", normal_range="70-100",
                      report_date=datetime(2023, 6, 1)),
            Parameter(name="HbA1c", value=8.2, unit="%", normal_range="4-5.6",
                      report_date=datetime(2024, 1, 10)),
            Parameter(name="Sodium", value=140, unit="mmol/L", normal_range="136-145",
                      report_date=datetime(2024, 1, 10)),
        ],
        reports=[
            ReportRecord(type="Lipid Profile"),
            ReportRecord(document_type="Cardiology Consult", conditions=["Hypertension"]),
        ],
        report_types=["Lipid Profile"],
        member=MemberInfo(gender="M"),
        date_of_birth=datetime(1970, 5, 1),
    )
    fields.update(overrides)
    return ConditionAnalysisRequest(**fields)


class TestAnalyzeConditions:
    def test_full_analysis(self, fake_llm):
        client = fake_llm(_route_reply)
        result = asyncio.run(analyze_conditions(_request(), client=client))

        auto = [c.normalized_name for c in result.auto_add]
        manual = [c.normalized_name for c in result.manual_review]
        # Diabetes 95 (oracle, shadows local), Hypertension 85 (explicit, one evidence)
        assert auto == ["Diabetes", "Hypertension"]
        # Hyperlipidemia 50 + 15 + 5 + 5; PCOS rejected for a male member
        assert manual == ["Hyperlipidemia"]
        assert result.manual_review[0].validation_score == 75

        assert result.oracle_consulted is True
        assert len(client.calls) == 2
        assert result.total_parameters == 4
        assert result.abnormal_parameters == 3
        assert result.report_types == ["Lipid Profile", "Cardiology Consult"]
        # explicit + 2 parameter + 2 report-type
        assert result.candidate_count == 5

    def test_trends_attached(self, fake_llm):
        result = asyncio.run(analyze_conditions(_request(), client=fake_llm(_route_reply)))
        assert len(result.trends) == 1
        trend = result.trends[0]
        assert trend.parameter_name == "glucose"
        assert trend.trend == TrendDirection.INCREASING
        assert [p.value for p in trend.values] == [150.0, 180.0]

    def test_oracle_failure_falls_back_to_local(self, fake_llm):
        client = fake_llm(error=RuntimeError("provider outage"))
        result = asyncio.run(analyze_conditions(_request(), client=client))
        auto = {c.normalized_name: c for c in result.auto_add}
        assert set(auto) == {"Diabetes", "Hypertension"}
        assert auto["Diabetes"].source == SuggestionSource.PARAMETER_ANALYSIS
        assert auto["Diabetes"].evidence == [
            "Glucose: 180 mg/dL",
            "Glucose: 150 mg/dL",
            "HbA1c: 8.2 %",
        ]
        assert auto["Diabetes"].validation_score == 100
        assert result.manual_review == []

    def test_without_client(self):
        result = asyncio.run(analyze_conditions(_request()))
        assert result.oracle_consulted is False
        assert [c.normalized_name for c in result.auto_add] == ["Diabetes", "Hypertension"]

    def test_use_oracle_false(self, fake_llm):
        client = fake_llm(_route_reply)
        result = asyncio.run(analyze_conditions(_request(use_oracle=False), client=client))
        assert client.calls == []
        assert result.oracle_consulted is False

    def test_existing_condition_warning_lowers_score(self, fake_llm):
        client = fake_llm(_route_reply)
        plain = asyncio.run(analyze_conditions(_request(), client=client))
        warned = asyncio.run(
            analyze_conditions(_request(existing_conditions=["Diabetes Mellitus"]), client=client)
        )
        score = {c.normalized_name: c.validation_score for c in plain.auto_add}
        warned_all = {c.normalized_name: c for c in [*warned.auto_add, *warned.manual_review]}
        assert warned_all["Diabetes"].validation_score == score["Diabetes"] - 5

    def test_request_threshold_overrides_default(self, fake_llm):
        client = fake_llm(_route_reply)
        result = asyncio.run(
            analyze_conditions(_request(auto_add_threshold=100), client=client)
        )
        assert result.auto_add == []
        assert len(result.manual_review) == 3

    def test_default_threshold_argument(self):
        result = asyncio.run(analyze_conditions(_request(), default_threshold=90))
        assert [c.normalized_name for c in result.auto_add] == ["Diabetes"]

    def test_empty_request(self, fake_llm):
        client = fake_llm(_route_reply)
        result = asyncio.run(analyze_conditions(ConditionAnalysisRequest(), client=client))
        assert result.auto_add == []
        assert result.manual_review == []
        assert result.oracle_consulted is False
        assert client.calls == []
