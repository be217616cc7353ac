"""
Prompt construction for LLM condition suggestions.

Two request shapes share one reply format: abnormal lab parameters (with
severity labels and locally detected combinations), or a list of distinct
report-type labels. Both ask for a single JSON object with a `conditions`
array, which llm/response_parser.py decodes.
"""

from __future__ import annotations

from typing import Iterable, Optional

from api.condition_models import ExistingConditionLike, MemberInfo, Parameter
from conditions.combinations import CombinationMatch, format_evidence
from conditions.validator import existing_condition_name
from extraction.severity import calculate_severity, severity_level

_JSON_FORMAT = """{
  "conditions": [
    {
      "name": "Condition Name",
      "confidence": "high|medium|low",
      "evidence": ["%s 1", "%s 2"],
      "reasoning": "Brief explanation of why this condition is suggested",
      "severity": "mild|moderate|severe"
    }
  ]
}"""

_SHARED_GUIDELINES = (
    "- Only suggest well-established medical conditions\n"
    "- Avoid test names, procedure names, or non-medical terms\n"
    "- Consider age and gender appropriateness\n"
    "- Do NOT suggest conditions already in the existing conditions list\n"
    "- Be specific but not overly technical"
)


def _member_section(
    member_info: Optional[MemberInfo],
    existing_conditions: Iterable[ExistingConditionLike],
) -> list[str]:
    lines = ["## Member Info"]
    if member_info is not None and member_info.age:
        lines.append(f"- Age: {member_info.age} years")
    if member_info is not None and member_info.gender:
        lines.append(f"- Gender: {member_info.gender}")
    existing = [n for n in (existing_condition_name(c) for c in existing_conditions) if n]
    if existing:
        lines.append(f"- Existing Conditions: {', '.join(existing)}")
    if len(lines) == 1:
        lines.append("- Not provided")
    return lines


class PromptEngine:
    """Builds system and user prompts for condition suggestion."""

    def build_system_prompt(self) -> str:
        return (
            "You are a medical assistant helping to organise a member's health "
            "record. You suggest candidate diagnosed conditions for human review; "
            "you do not diagnose. Return only a valid JSON object with condition "
            "suggestions including confidence levels and evidence. No markdown, "
            "no commentary."
        )

    def build_parameter_prompt(
        self,
        parameters: list[Parameter],
        member_info: Optional[MemberInfo] = None,
        existing_conditions: Iterable[ExistingConditionLike] = (),
        combinations: Iterable[CombinationMatch] = (),
    ) -> str:
        """User prompt for suggestions keyed off abnormal lab parameters."""
        sections: list[str] = ["## Abnormal Parameters"]
        for i, p in enumerate(parameters, start=1):
            severity = calculate_severity(p.value, p.normal_range)
            label = severity_level(severity).value.upper()
            sections.append(f"{i}. {format_evidence(p)}")
            sections.append(f"   Normal Range: {p.normal_range or 'Not specified'}")
            sections.append(f"   Severity: {label} ({severity * 100:.0f}% deviation)")

        sections.append("\n## Parameter Combinations Detected")
        combo_lines = [
            f"- {m.combination.condition}: "
            f"{', '.join(p.name for p in m.matching_parameters)} "
            f"({'SEVERE' if m.severity > 0.5 else 'MODERATE'})"
            for m in combinations
        ]
        sections.extend(combo_lines or ["None detected"])

        sections.append("")
        sections.extend(_member_section(member_info, existing_conditions))

        sections.append(
            "\n## Instructions\n"
            "Suggest potential diagnosed conditions with:\n"
            "1. Condition name (standard medical terminology)\n"
            "2. Confidence (high/medium/low): high for multiple strongly supporting "
            "parameters or a detected combination, medium for some support, "
            "low for weak or isolated evidence\n"
            "3. Supporting evidence (which parameters support it)\n"
            "4. Clinical reasoning (brief)\n"
            "5. Severity (mild/moderate/severe) from the parameter deviations\n\n"
            "## Guidelines\n"
            f"{_SHARED_GUIDELINES}\n"
            "- Lower confidence for isolated abnormalities\n\n"
            "Return ONLY valid JSON in this exact format:\n"
            + _JSON_FORMAT % ("Parameter", "Parameter")
        )
        return "\n".join(sections)

    def build_report_type_prompt(
        self,
        report_types: list[str],
        member_info: Optional[MemberInfo] = None,
        existing_conditions: Iterable[ExistingConditionLike] = (),
    ) -> str:
        """User prompt for suggestions keyed off the kinds of reports on file."""
        sections: list[str] = ["## Report Types"]
        for i, rt in enumerate(report_types, start=1):
            sections.append(f"{i}. {rt}")

        sections.append("")
        sections.extend(_member_section(member_info, existing_conditions))

        sections.append(
            "\n## Instructions\n"
            "Suggest conditions these reports typically diagnose, monitor or "
            "screen for. Several related tests are a stronger signal. Use higher "
            "confidence for specific diagnostic tests and lower confidence for "
            "general screening panels.\n\n"
            "## Guidelines\n"
            f"{_SHARED_GUIDELINES}\n\n"
            "Return ONLY valid JSON in this format:\n"
            + _JSON_FORMAT % ("Report Type", "Report Type")
        )
        return "\n".join(sections)
