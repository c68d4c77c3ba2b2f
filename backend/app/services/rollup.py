"""
Rollup calculator.

Pure functions that turn monthly series into period values and compare them
with targets. Nothing here touches the database or the clock.

Period types:
- flow: sum of the months with data
- stock: value of the last month with data
- average: mean of the months with data

A month without data is unknown, not zero. A period with no data at all rolls
up to None, and anything compared against None is "gray".
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Mapping, NamedTuple, Optional, Sequence, Union

from app.models.metric import MetricUnit, MetricDirection, MetricPeriodType
from app.services.metric_catalog import MetricCatalog, MetricDefinition, build_default_catalog
from app.services.periods import PeriodWindow, FiscalCalendar

# Status thresholds
HIGHER_GREEN_PCT = 100.0
HIGHER_YELLOW_PCT = 90.0
LOWER_YELLOW_OVERSHOOT_PCT = 10.0
BAND_TOLERANCE_PCT = {
    # unit: (green, yellow) maximum deviation from target, in percent
    MetricUnit.CURRENCY: (5.0, 10.0),
    MetricUnit.COUNT: (5.0, 10.0),
    MetricUnit.PERCENTAGE: (2.0, 4.0),
}

MonthlySeries = Mapping[str, Optional[float]]


class SignalStatus(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    GRAY = "gray"


class Variance(NamedTuple):
    variance: Optional[float]
    variance_pct: Optional[float]


@dataclass(frozen=True)
class RollupResult:
    metric_key: str
    period: str
    months: Sequence[str]
    actual: Optional[float]
    target: Optional[float]
    variance: Optional[float]
    variance_pct: Optional[float]
    progress: Optional[float]
    status: SignalStatus


def aggregate_values(values: Sequence[Optional[float]], period_type: MetricPeriodType) -> Optional[float]:
    """Combine ordered monthly values according to the period type."""
    present = [float(v) for v in values if v is not None]
    if not present:
        return None
    if period_type == MetricPeriodType.FLOW:
        return sum(present)
    if period_type == MetricPeriodType.STOCK:
        return present[-1]
    return sum(present) / len(present)


def compute_period_value(
    metric_key: str,
    year: int,
    period: Union[PeriodWindow, str],
    series: Union[MonthlySeries, Sequence[Optional[float]]],
    period_type: Optional[MetricPeriodType] = None,
    *,
    catalog: Optional[MetricCatalog] = None,
    calendar: Optional[FiscalCalendar] = None,
    as_of: Optional[date] = None,
) -> Optional[float]:
    """
    Roll a metric's monthly series up over a period.

    `series` is either a month-keyed mapping, read over the months of the
    period, or a sequence of values already ordered by month. When
    `period_type` is omitted it comes from the catalog definition.
    """
    if period_type is None:
        period_type = (catalog or build_default_catalog()).require(metric_key).period_type
    if isinstance(series, Mapping):
        if isinstance(period, str):
            period = (calendar or FiscalCalendar()).window(period, year, as_of)
        values = [series.get(month) for month in period.months]
    else:
        values = list(series)
    return aggregate_values(values, period_type)


def compute_variance(actual: Optional[float], plan: Optional[float]) -> Variance:
    if actual is None or plan is None:
        return Variance(None, None)
    variance = actual - plan
    if plan == 0:
        return Variance(variance, None)
    return Variance(variance, variance / abs(plan) * 100)


def _deviation_pct(actual: float, target: float) -> float:
    return (actual - target) * 100 / abs(target)


def compute_signal_status(
    actual: Optional[float],
    target: Optional[float],
    direction: MetricDirection,
    unit: MetricUnit = MetricUnit.CURRENCY,
) -> SignalStatus:
    if actual is None or target is None:
        return SignalStatus.GRAY

    if direction == MetricDirection.HIGHER_IS_BETTER:
        if target == 0:
            return SignalStatus.GREEN if actual >= 0 else SignalStatus.RED
        if target > 0:
            attainment = actual / target * 100
        else:
            # shortfall measured against the magnitude of a negative plan
            attainment = 100 + _deviation_pct(actual, target)
        if attainment >= HIGHER_GREEN_PCT:
            return SignalStatus.GREEN
        if attainment >= HIGHER_YELLOW_PCT:
            return SignalStatus.YELLOW
        return SignalStatus.RED

    if direction == MetricDirection.LOWER_IS_BETTER:
        if actual <= target:
            return SignalStatus.GREEN
        if target == 0:
            return SignalStatus.RED
        overshoot = (actual - target) / target * 100 if target > 0 else _deviation_pct(actual, target)
        if overshoot <= LOWER_YELLOW_OVERSHOOT_PCT:
            return SignalStatus.YELLOW
        return SignalStatus.RED

    # target band
    if target == 0:
        return SignalStatus.GREEN if actual == 0 else SignalStatus.RED
    green, yellow = BAND_TOLERANCE_PCT.get(unit, BAND_TOLERANCE_PCT[MetricUnit.CURRENCY])
    deviation = abs(actual - target) / abs(target) * 100
    if deviation <= green:
        return SignalStatus.GREEN
    if deviation <= yellow:
        return SignalStatus.YELLOW
    return SignalStatus.RED


def compute_progress(
    actual: Optional[float],
    target: Optional[float],
    direction: MetricDirection,
) -> Optional[float]:
    """Progress toward target in percent; may exceed 100 for higher-is-better."""
    if actual is None or target is None or target == 0:
        return None
    if direction == MetricDirection.HIGHER_IS_BETTER:
        return max(0.0, 100 + _deviation_pct(actual, target))
    if direction == MetricDirection.LOWER_IS_BETTER:
        if actual <= target:
            return 100.0
        return max(0.0, 100 - _deviation_pct(actual, target))
    return max(0.0, 100 - abs(_deviation_pct(actual, target)))


def compute_rollup(
    definition: MetricDefinition,
    window: PeriodWindow,
    actual: Optional[float],
    target: Optional[float],
) -> RollupResult:
    """Compare an already rolled-up actual with its target."""
    variance = compute_variance(actual, target)
    return RollupResult(
        metric_key=definition.metric_key,
        period=window.label,
        months=window.months,
        actual=actual,
        target=target,
        variance=variance.variance,
        variance_pct=variance.variance_pct,
        progress=compute_progress(actual, target, definition.direction),
        status=compute_signal_status(actual, target, definition.direction, definition.unit),
    )
