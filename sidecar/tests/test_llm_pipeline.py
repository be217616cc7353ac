import json

from api.condition_models import (
    Confidence,
    ExistingCondition,
    MemberInfo,
    Parameter,
    SeverityLevel,
    SuggestionSource,
)
from conditions.combinations import identify_parameter_combinations
from llm.prompt_engine import PromptEngine
from llm.response_parser import extract_json_object, parse_condition_payload


def _abnormal_parameters() -> list[Parameter]:
    return [
        Parameter(name="Fasting Glucose", value=180, unit="mg/dL", normal_range="70-100", is_abnormal=True),
        Parameter(name="HbA1c", value=8.2, unit="%", normal_range="4-5.6", is_abnormal=True),
        Parameter(name="Ferritin", value=10, unit="ng/mL", is_abnormal=True),
    ]


MOCK_REPLY = {
    "conditions": [
        {
            "name": "Type 2 Diabetes",
            "confidence": "high",
            "evidence": ["Fasting Glucose", "HbA1c"],
            "reasoning": "Both glycaemic markers are well above range.",
            "severity": "severe",
        },
        {
            "name": "Iron Deficiency",
            "confidence": "low",
            "evidence": ["Ferritin"],
            "reasoning": "Isolated low ferritin.",
            "severity": "mild",
        },
    ]
}


class TestPromptEngine:
    def test_system_prompt_asks_for_json_only(self):
        prompt = PromptEngine().build_system_prompt()
        assert "JSON" in prompt
        assert "do not diagnose" in prompt

    def test_parameter_prompt_contains_parameters(self):
        params = _abnormal_parameters()
        prompt = PromptEngine().build_parameter_prompt(
            params, combinations=identify_parameter_combinations(params)
        )
        assert "1. Fasting Glucose: 180 mg/dL" in prompt
        assert "Normal Range: 70-100" in prompt
        assert "Severity: SEVERE (100% deviation)" in prompt
        assert "3. Ferritin: 10 ng/mL" in prompt
        assert "Normal Range: Not specified" in prompt
        assert "Severity: MILD (0% deviation)" in prompt

    def test_parameter_prompt_contains_combinations(self):
        params = _abnormal_parameters()
        prompt = PromptEngine().build_parameter_prompt(
            params, combinations=identify_parameter_combinations(params)
        )
        assert "- Diabetes: Fasting Glucose, HbA1c (SEVERE)" in prompt

    def test_parameter_prompt_without_combinations(self):
        prompt = PromptEngine().build_parameter_prompt(_abnormal_parameters())
        assert "None detected" in prompt

    def test_member_info_and_existing_conditions(self):
        prompt = PromptEngine().build_parameter_prompt(
            _abnormal_parameters(),
            MemberInfo(age=45, gender="female"),
            ["Asthma", ExistingCondition(condition="Gout"), ExistingCondition()],
        )
        assert "- Age: 45 years" in prompt
        assert "- Gender: female" in prompt
        assert "- Existing Conditions: Asthma, Gout" in prompt

    def test_member_info_missing(self):
        prompt = PromptEngine().build_parameter_prompt(_abnormal_parameters())
        assert "- Not provided" in prompt
        assert "Age:" not in prompt

    def test_reply_format_in_both_prompts(self):
        engine = PromptEngine()
        for prompt in (
            engine.build_parameter_prompt(_abnormal_parameters()),
            engine.build_report_type_prompt(["Lipid Profile"]),
        ):
            assert '"conditions"' in prompt
            assert '"confidence": "high|medium|low"' in prompt
            assert '"severity": "mild|moderate|severe"' in prompt

    def test_report_type_prompt_numbers_types(self):
        prompt = PromptEngine().build_report_type_prompt(
            ["Lipid Profile", "HbA1c", "Complete Blood Count"]
        )
        assert "1. Lipid Profile" in prompt
        assert "2. HbA1c" in prompt
        assert "3. Complete Blood Count" in prompt


class TestExtractJsonObject:
    def test_plain_object(self):
        assert extract_json_object('{"a": 1}') == '{"a": 1}'

    def test_wrapped_in_prose_and_fences(self):
        text = 'Here you go:\n```json\n{"conditions": []}\n```\nLet me know.'
        assert extract_json_object(text) == '{"conditions": []}'

    def test_nested_objects(self):
        text = 'x {"a": {"b": {"c": 1}}} y {"d": 2}'
        assert extract_json_object(text) == '{"a": {"b": {"c": 1}}}'

    def test_braces_inside_strings(self):
        text = '{"reasoning": "values } and { in text", "q": "say \\"}\\""}'
        assert json.loads(extract_json_object(text))["reasoning"] == "values } and { in text"

    def test_no_object(self):
        assert extract_json_object("no json here") is None
        assert extract_json_object("") is None
        assert extract_json_object(None) is None

    def test_unbalanced(self):
        assert extract_json_object('{"a": 1') is None

    def test_skips_unbalanced_prefix(self):
        assert extract_json_object('{ broken {"a": 1}') == '{"a": 1}'
        assert extract_json_object('} {"a": 1}') == '{"a": 1}'


class TestParseConditionPayload:
    def test_valid_reply(self):
        text = "Sure!\n" + json.dumps(MOCK_REPLY)
        suggestions = parse_condition_payload(text, SuggestionSource.PARAMETER_ANALYSIS)
        assert [s.condition for s in suggestions] == ["Type 2 Diabetes", "Iron Deficiency"]
        first = suggestions[0]
        assert first.confidence == Confidence.HIGH
        assert first.severity == SeverityLevel.SEVERE
        assert first.source == SuggestionSource.PARAMETER_ANALYSIS
        assert first.evidence == ["Fasting Glucose", "HbA1c"]
        assert first.reasoning.startswith("Both")

    def test_defaults_for_unknown_fields(self):
        text = json.dumps(
            {"conditions": [{"name": "  Gout ", "confidence": "certain", "severity": 3}]}
        )
        [s] = parse_condition_payload(text, SuggestionSource.REPORT_TYPE, ["Uric Acid"])
        assert s.condition == "Gout"
        assert s.confidence == Confidence.MEDIUM
        assert s.severity == SeverityLevel.MILD
        assert s.evidence == ["Uric Acid"]
        assert s.reasoning is None

    def test_case_insensitive_enums(self):
        text = json.dumps({"conditions": [{"name": "Gout", "confidence": "HIGH", "severity": "Severe"}]})
        [s] = parse_condition_payload(text, SuggestionSource.PARAMETER_ANALYSIS)
        assert s.confidence == Confidence.HIGH
        assert s.severity == SeverityLevel.SEVERE

    def test_entries_without_name_skipped(self):
        text = json.dumps(
            {"conditions": [{"confidence": "high"}, {"name": 42}, "Asthma", {"name": ""}, {"name": "Gout"}]}
        )
        suggestions = parse_condition_payload(text, SuggestionSource.PARAMETER_ANALYSIS)
        assert [s.condition for s in suggestions] == ["Gout"]

    def test_missing_conditions(self):
        assert parse_condition_payload('{"result": []}', SuggestionSource.PARAMETER_ANALYSIS) == []
        assert parse_condition_payload('{"conditions": "Gout"}', SuggestionSource.PARAMETER_ANALYSIS) == []

    def test_not_json(self):
        assert parse_condition_payload("I cannot help with that.", SuggestionSource.PARAMETER_ANALYSIS) == []
        assert parse_condition_payload("{conditions: [}", SuggestionSource.PARAMETER_ANALYSIS) == []
        assert parse_condition_payload(None, SuggestionSource.PARAMETER_ANALYSIS) == []
