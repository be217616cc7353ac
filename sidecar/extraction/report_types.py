"""Report-type labels and conditions printed on a member's reports."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from api.condition_models import (
    ConditionSuggestion,
    Confidence,
    ReportRecord,
    SuggestionSource,
)

# Database ids stored where a label should be (e.g. Mongo ObjectIds)
_OBJECT_ID = re.compile(r"^[a-f0-9]{20,}$", re.IGNORECASE)


def _report_label(report: ReportRecord) -> Optional[str]:
    for candidate in (report.type, report.document_type, report.test_name, report.name):
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def _looks_like_object_id(label: str) -> bool:
    return len(label) > 20 and bool(_OBJECT_ID.match(label))


def _unique(labels: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for label in labels:
        if label not in seen:
            seen.add(label)
            result.append(label)
    return result


def extract_report_types(reports: Iterable[ReportRecord]) -> list[str]:
    """Distinct report-type labels, in first-seen order."""
    labels = []
    for report in reports:
        label = _report_label(report)
        if label is None or _looks_like_object_id(label):
            continue
        labels.append(label)
    return _unique(labels)


def collect_report_types(
    reports: Iterable[ReportRecord],
    profile_report_types: Iterable[str] = (),
) -> list[str]:
    """Union of labels from reports and labels already stored on the profile."""
    from_profile = [
        rt.strip() for rt in profile_report_types if isinstance(rt, str) and rt.strip()
    ]
    return _unique([*extract_report_types(reports), *from_profile])


def explicit_mentions(reports: Iterable[ReportRecord]) -> list[ConditionSuggestion]:
    """Conditions a report names outright, one suggestion per distinct name."""
    seen: set[str] = set()
    suggestions: list[ConditionSuggestion] = []
    for report in reports:
        label = _report_label(report) or "Report"
        for condition in report.conditions:
            if not isinstance(condition, str) or not condition.strip():
                continue
            name = condition.strip()
            key = name.lower()
            if key in seen:
                continue
            seen.add(key)
            suggestions.append(
                ConditionSuggestion(
                    condition=name,
                    confidence=Confidence.HIGH,
                    source=SuggestionSource.EXPLICIT_MENTION,
                    evidence=[label],
                    reasoning=f"Named in {label}",
                )
            )
    return suggestions
