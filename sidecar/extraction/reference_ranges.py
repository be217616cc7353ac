"""Parse lab values and free-text reference ranges.

Reports print their normal ranges in several loose formats:
- Dash ranges: "70-100", "4.0 – 5.6", "3.5—5.0 mmol/L"
- One-sided: "> 40", ">= 60", "< 200"

Values arrive as numbers or as strings with units and flags attached
("180 mg/dL", "8.2%", "<0.01"). Parsing is lenient: anything that can't
be read yields None and callers treat it as "no information".
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from api.condition_models import Parameter

# Characters kept before reading a numeric value
_NON_NUMERIC = re.compile(r"[^0-9.\-]")

# Leading float, like a lenient parseFloat: "12.5.3" -> 12.5, "12-15" -> 12
_LEADING_FLOAT = re.compile(r"^[-+]?(?:\d+(?:\.\d*)?|\.\d+)")

# "min - max" with hyphen, en-dash or em-dash
_DASH_RANGE = re.compile(r"(\d+\.?\d*)\s*[-–—]\s*(\d+\.?\d*)")


@dataclass(frozen=True)
class ReferenceRange:
    low: float
    high: float

    @property
    def center(self) -> float:
        return (self.low + self.high) / 2

    @property
    def width(self) -> float:
        return self.high - self.low


def parse_numeric_value(value: Union[float, int, str, None]) -> Optional[float]:
    """Read a lab value as a float, or None if it has no numeric content."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        numeric = float(value)
        return numeric if math.isfinite(numeric) else None

    cleaned = _NON_NUMERIC.sub("", str(value))
    match = _LEADING_FLOAT.match(cleaned)
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def parse_reference_range(normal_range: Optional[str]) -> Optional[ReferenceRange]:
    """Parse the first "min-max" range found in the text."""
    if not normal_range:
        return None
    match = _DASH_RANGE.search(normal_range)
    if not match:
        return None
    try:
        return ReferenceRange(low=float(match.group(1)), high=float(match.group(2)))
    except ValueError:
        return None


def is_value_in_range(value: Union[float, int, str, None], normal_range: Optional[str]) -> bool:
    """Check a value against a printed reference range.

    Handles "min-max", ">X"/">=X" and "<X"/"<=X". Missing input counts as
    out of range; an unrecognised range format is assumed normal.
    """
    if not normal_range or value is None or value == "":
        return False

    numeric = parse_numeric_value(value)
    if numeric is None:
        return False

    text = normal_range.strip()

    if text.startswith(">"):
        threshold = parse_numeric_value(text)
        return threshold is not None and numeric > threshold

    if text.startswith("<"):
        threshold = parse_numeric_value(text)
        return threshold is not None and numeric < threshold

    parsed = parse_reference_range(text)
    if parsed is not None:
        return parsed.low <= numeric <= parsed.high

    return True


def flag_abnormal(parameters: Iterable[Parameter]) -> list[Parameter]:
    """Return copies of the parameters with is_abnormal filled in where unset.

    A parameter without a printed range is not flagged.
    """
    flagged: list[Parameter] = []
    for param in parameters:
        if param.is_abnormal is None:
            abnormal = bool(param.normal_range) and not is_value_in_range(
                param.value, param.normal_range
            )
            param = param.model_copy(update={"is_abnormal": abnormal})
        flagged.append(param)
    return flagged
