"""Direction of a parameter's readings across dated reports."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from api.condition_models import Parameter, ParameterTrend, TrendDirection, TrendPoint
from extraction.reference_ranges import parse_numeric_value

# Share of moves that must go one way to call a trend
_DOMINANT_SHARE = 0.7


def _classify(points: list[TrendPoint]) -> TrendDirection:
    rises = 0
    falls = 0
    for prev, cur in zip(points, points[1:]):
        if cur.value > prev.value:
            rises += 1
        elif cur.value < prev.value:
            falls += 1

    total = rises + falls
    if total == 0:
        return TrendDirection.STABLE
    if rises / total > _DOMINANT_SHARE:
        return TrendDirection.INCREASING
    if falls / total > _DOMINANT_SHARE:
        return TrendDirection.DECREASING
    return TrendDirection.FLUCTUATING


def analyze_parameter_trends(parameters: Iterable[Parameter]) -> list[ParameterTrend]:
    """Group dated numeric readings by parameter name and classify each series.

    Readings without a report date or a numeric value are ignored, as are
    parameters with fewer than two readings.
    """
    series: dict[str, list[TrendPoint]] = defaultdict(list)
    for param in parameters:
        if param.report_date is None:
            continue
        numeric = parse_numeric_value(param.value)
        if numeric is None:
            continue
        series[param.name.strip().lower()].append(
            TrendPoint(date=param.report_date, value=numeric)
        )

    trends: list[ParameterTrend] = []
    for name, points in series.items():
        if len(points) < 2:
            continue
        # timestamp() lets naive and aware dates sort together
        points.sort(key=lambda p: p.date.timestamp())
        trends.append(
            ParameterTrend(parameter_name=name, trend=_classify(points), values=points)
        )
    return trends
