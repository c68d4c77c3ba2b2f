"""
Target resolution.

Order: monthly targets when every month of the period has one, then the KR's
static target for the period label, then None. A full-year target is never
scaled down to a quarter.
"""
from datetime import date
from typing import Optional, Union

from app.services.metric_catalog import MetricCatalog, Dimension
from app.services.metric_store import SeriesIndex
from app.services.okr_registry import OKRRegistry, KeyResultDef
from app.services.periods import FiscalCalendar, PeriodWindow
from app.services.rollup import aggregate_values


class TargetResolver:

    def __init__(
        self,
        catalog: MetricCatalog,
        registry: OKRRegistry,
        monthly_targets: SeriesIndex,
        calendar: Optional[FiscalCalendar] = None,
        as_of: Optional[date] = None,
    ):
        self.catalog = catalog
        self.registry = registry
        self.monthly_targets = monthly_targets
        self.calendar = calendar or FiscalCalendar()
        self.as_of = as_of

    def resolve_target(
        self,
        metric_key: str,
        year: int,
        period: Union[str, PeriodWindow],
        kr: Optional[KeyResultDef] = None,
        dimension: Dimension = None,
    ) -> Optional[float]:
        """
        Target for a metric over a period.

        Raises NotFoundError for an unknown metric and ValidationError for an
        unknown period label. `dimension` defaults to the metric's own.
        """
        definition = self.catalog.require(metric_key)
        window = period if isinstance(period, PeriodWindow) else \
            self.calendar.window(period, year, self.as_of)
        if dimension is None:
            dimension = definition.default_dimension

        monthly = self.monthly_targets.series(metric_key, dimension)
        if window.months and all(month in monthly for month in window.months):
            return aggregate_values([monthly[m] for m in window.months], definition.period_type)

        # Static KR targets are set for the metric's own scope only
        if dimension != definition.default_dimension:
            return None
        kr = kr or self.registry.kr_for_metric(metric_key)
        if kr is not None and window.target_key is not None:
            value = kr.targets.get(window.target_key)
            if value is not None:
                return float(value)
        return None
