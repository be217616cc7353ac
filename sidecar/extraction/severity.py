"""Normalized severity of a lab value's deviation from its reference range."""

from __future__ import annotations

from typing import Optional, Union

from api.condition_models import SeverityLevel
from extraction.reference_ranges import parse_numeric_value, parse_reference_range

SEVERE_THRESHOLD = 0.5
MODERATE_THRESHOLD = 0.2


def calculate_severity(
    value: Union[float, int, str, None],
    normal_range: Optional[str],
) -> float:
    """Return 0.0 at the range midpoint rising to 1.0 at either boundary.

    Values at or beyond a boundary all saturate at 1.0. Unparsable values,
    unparsable ranges and zero-width ranges give 0.0.
    """
    numeric = parse_numeric_value(value)
    if numeric is None:
        return 0.0

    parsed = parse_reference_range(normal_range)
    if parsed is None or parsed.width <= 0:
        return 0.0

    deviation = abs(numeric - parsed.center)
    return min(deviation / (parsed.width / 2), 1.0)


def severity_level(score: float) -> SeverityLevel:
    """Bucket a 0-1 severity score."""
    if score > SEVERE_THRESHOLD:
        return SeverityLevel.SEVERE
    if score > MODERATE_THRESHOLD:
        return SeverityLevel.MODERATE
    return SeverityLevel.MILD
