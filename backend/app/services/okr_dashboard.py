"""
Dashboard aggregator for the OKR module.

Builds the summary tree for a (period, business unit, year):

1. Check the response cache
2. Resolve the period window against as-of, computed once per call
3. Bulk-read actuals, targets, initiatives and latest check-ins
4. Collect live values for every KR and highlight metric concurrently
5. Resolve targets and run each metric through the rollup calculator
6. Assemble objectives -> KRs -> initiatives, coverage, highlights and series

A metric without data, or whose source fails, is gray in the tree; it never
fails the request.
"""
import logging
from collections import Counter
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ValidationError
from app.models.base import utcnow
from app.models.initiative import Initiative
from app.schemas.checkin import CheckInResponse
from app.schemas.okr import (
    CoverageResponse, HighlightResponse, InitiativeResponse, KRStatusResponse,
    KRTargetsResponse, MetricSeriesResponse, ObjectiveSummary, PeriodRollup,
    QuarterMetricSummary, QuarterSummaryMeta, QuarterSummaryResponse, SeriesPoint,
    StatusCounts, SummaryMeta, SummaryTree, TargetsResponse,
)
from app.services.checkins import CheckInLedger
from app.services.live_metrics import (
    LiveMetricSources, SnapshotContext, Unavailable, SOURCE_ERROR, default_sources, monthly_series,
)
from app.services.metric_catalog import (
    MetricCatalog, MetricDefinition, ALL_BUSINESS_UNITS, effective_dimension,
)
from app.services.metric_store import TargetActualStore, SeriesIndex
from app.services.okr_registry import OKRRegistry, KeyResultDef
from app.services.periods import (
    FiscalCalendar, PeriodWindow, LAST_12_MONTHS, QUARTER_LABELS, FULL_YEAR, YEAR_TO_DATE,
    normalize_period_label, months_between, month_key,
)
from app.services.response_cache import ResponseCache, build_cache_key
from app.services.rollup import RollupResult, compute_rollup
from app.services.targets import TargetResolver

logger = logging.getLogger(__name__)

HIGHLIGHT_METRICS = ("mrr_active", "revenue_net", "ebitda", "bad_debt_pct", "net_mrr_churn_pct")
MAX_SERIES_MONTHS = 36

SUMMARY_CACHE_PREFIX = "okr_summary"
QUARTER_SUMMARY_CACHE_PREFIX = "okr_quarter_summary"
METRIC_SERIES_CACHE_PREFIX = "okr_metric_series"


def _mark_cache_hit(response):
    meta = response.meta.model_copy(update={"cache_hit": True})
    return response.model_copy(update={"meta": meta})


class DashboardAggregator:
    """One instance per request; holds the request's session."""

    def __init__(
        self,
        db: AsyncSession,
        catalog: MetricCatalog,
        registry: OKRRegistry,
        cache: ResponseCache,
        calendar: Optional[FiscalCalendar] = None,
        sources: Optional[LiveMetricSources] = None,
        clock: Callable[[], datetime] = utcnow,
        store: Optional[TargetActualStore] = None,
        default_year: Optional[int] = None,
        business_units: Optional[Sequence[str]] = None,
    ):
        self.catalog = catalog
        self.registry = registry
        self.cache = cache
        self.calendar = calendar or FiscalCalendar(settings.FISCAL_YEAR_START_MONTH)
        self.sources = sources or default_sources
        self.clock = clock
        self.store = store or TargetActualStore(db)
        self.ledger = CheckInLedger(db, registry)
        self.default_year = default_year or settings.OKR_YEAR
        self.business_units = list(business_units or settings.OKR_BUSINESS_UNITS)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _business_unit(self, business_unit: Optional[str]) -> str:
        business_unit = (business_unit or ALL_BUSINESS_UNITS).strip().lower()
        if business_unit not in self.business_units:
            raise ValidationError(
                "bu",
                f"Unknown business unit {business_unit!r}; expected one of {', '.join(self.business_units)}"
            )
        return business_unit

    def _with_components(self, metric_keys: Iterable[str]) -> List[str]:
        """Metric keys plus every metric a derived one is computed from."""
        keys: List[str] = []
        pending = list(metric_keys)
        while pending:
            key = pending.pop(0)
            if key in keys:
                continue
            keys.append(key)
            pending.extend(self.catalog.require(key).components)
        return keys

    def _highlight_keys(self) -> List[str]:
        return [key for key in HIGHLIGHT_METRICS if key in self.catalog]

    @staticmethod
    def _rollup(
        definition: MetricDefinition,
        window: PeriodWindow,
        reading,
        target: Optional[float],
    ) -> RollupResult:
        actual = None if isinstance(reading, Unavailable) else reading
        return compute_rollup(definition, window, actual, target)

    # ------------------------------------------------------------------
    # summary
    # ------------------------------------------------------------------

    async def get_summary(
        self,
        period: str,
        business_unit: str = ALL_BUSINESS_UNITS,
        year: Optional[int] = None,
    ) -> SummaryTree:
        generated_at = self.clock()
        as_of = generated_at.date()
        year = year or self.default_year
        period = normalize_period_label(period)
        business_unit = self._business_unit(business_unit)

        key_params = {"period": period, "bu": business_unit, "year": year}
        if period in (YEAR_TO_DATE, LAST_12_MONTHS):
            # window moves with the as-of month
            key_params["asOf"] = month_key(as_of.year, as_of.month)
        cache_key = build_cache_key(SUMMARY_CACHE_PREFIX, key_params)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit for {cache_key}")
            return _mark_cache_hit(cached)

        window = self.calendar.window(period, year, as_of)
        chart_months = window.months if period == LAST_12_MONTHS else self.calendar.fiscal_months(year)
        months = sorted(set(window.months) | set(chart_months))

        metric_keys = list(dict.fromkeys(self.registry.metric_keys() + self._highlight_keys()))
        fetch_keys = self._with_components(metric_keys)

        actuals = await self.store.fetch_actuals(months, fetch_keys)
        targets = await self.store.fetch_targets(months, fetch_keys)
        initiatives = await self.store.fetch_initiatives()
        latest_checkins = await self.ledger.get_latest_per_kr(year)

        ctx = SnapshotContext(
            as_of=as_of,
            window=window,
            business_unit=business_unit,
            actuals=actuals,
            catalog=self.catalog,
        )
        readings = await self.sources.collect(ctx, metric_keys)
        resolver = TargetResolver(self.catalog, self.registry, targets, self.calendar, as_of)

        if business_unit != ALL_BUSINESS_UNITS:
            initiatives = [i for i in initiatives if i.business_unit in (None, business_unit)]
        initiative_responses = [InitiativeResponse.model_validate(i) for i in initiatives]

        objectives = []
        kr_ids: List[str] = []
        for objective in self.registry.objectives:
            kr_items = [
                self._kr_status(kr, window, business_unit, readings, resolver, initiatives, latest_checkins)
                for kr in objective.key_results
            ]
            kr_ids.extend(kr.id for kr in objective.key_results)
            counts = Counter(item.status.value for item in kr_items)
            objectives.append(ObjectiveSummary(
                id=objective.id,
                title=objective.title,
                description=objective.description,
                owner=objective.owner,
                status_counts=StatusCounts(**counts),
                key_results=kr_items,
                initiatives=[r for r in initiative_responses if r.objective_id == objective.id],
            ))

        unavailable = sorted(
            key for key, reading in readings.items()
            if isinstance(reading, Unavailable) and reading.reason == SOURCE_ERROR
        )
        if unavailable:
            logger.warning(f"Summary {cache_key} rendered without: {', '.join(unavailable)}")

        tree = SummaryTree(
            period=period,
            business_unit=business_unit,
            year=year,
            objectives=objectives,
            initiatives=initiative_responses,
            coverage=self._coverage(kr_ids, initiatives),
            highlights=self._highlights(window, business_unit, readings, resolver),
            series=self._series(metric_keys, chart_months, ctx, targets, business_unit),
            meta=SummaryMeta(
                cache_hit=False,
                generated_at=generated_at,
                as_of=as_of,
                fiscal_year=self.calendar.fiscal_year_of(as_of),
                current_quarter=self.calendar.quarter_of(as_of),
                period=period,
                months=list(window.months),
                business_unit=business_unit,
                unavailable_metrics=unavailable,
            ),
        )
        self.cache.set(cache_key, tree)
        return tree

    def _kr_status(
        self,
        kr: KeyResultDef,
        window: PeriodWindow,
        business_unit: str,
        readings: Dict,
        resolver: TargetResolver,
        initiatives: List[Initiative],
        latest_checkins: Dict,
    ) -> KRStatusResponse:
        definition = self.catalog.require(kr.metric_key)
        reading = readings[kr.metric_key]
        target = resolver.resolve_target(
            kr.metric_key, window.fiscal_year, window, kr=kr,
            dimension=effective_dimension(definition, business_unit),
        )
        result = self._rollup(definition, window, reading, target)
        checkin = latest_checkins.get(kr.id)

        return KRStatusResponse(
            id=kr.id,
            title=kr.title,
            metric_key=kr.metric_key,
            owner=kr.owner,
            unit=definition.unit,
            direction=definition.direction,
            current_value=result.actual,
            target=result.target,
            progress=result.progress,
            variance=result.variance,
            variance_pct=result.variance_pct,
            status=result.status,
            unavailable_reason=reading.reason if isinstance(reading, Unavailable) else None,
            initiative_ids=[i.id for i in initiatives if kr.id in (i.kr_ids or [])],
            latest_checkin=CheckInResponse.model_validate(checkin) if checkin else None,
        )

    @staticmethod
    def _coverage(kr_ids: List[str], initiatives: List[Initiative]) -> CoverageResponse:
        covered = set()
        for initiative in initiatives:
            if initiative.is_active:
                covered.update(initiative.kr_ids or [])
        uncovered = [kr_id for kr_id in kr_ids if kr_id not in covered]
        total = len(kr_ids)
        covered_count = total - len(uncovered)
        return CoverageResponse(
            total_krs=total,
            covered_krs=covered_count,
            coverage_pct=covered_count / total * 100 if total else None,
            uncovered_kr_ids=uncovered,
        )

    def _highlights(
        self,
        window: PeriodWindow,
        business_unit: str,
        readings: Dict,
        resolver: TargetResolver,
    ) -> List[HighlightResponse]:
        highlights = []
        for key in self._highlight_keys():
            definition = self.catalog.require(key)
            target = resolver.resolve_target(
                key, window.fiscal_year, window,
                dimension=effective_dimension(definition, business_unit),
            )
            result = self._rollup(definition, window, readings[key], target)
            highlights.append(HighlightResponse(
                metric_key=key,
                title=definition.title,
                unit=definition.unit,
                direction=definition.direction,
                value=result.actual,
                target=result.target,
                progress=result.progress,
                variance_pct=result.variance_pct,
                status=result.status,
            ))
        return highlights

    def _series(
        self,
        metric_keys: List[str],
        months: Sequence[str],
        ctx: SnapshotContext,
        targets: SeriesIndex,
        business_unit: str,
    ) -> Dict[str, List[SeriesPoint]]:
        series = {}
        for key in metric_keys:
            definition = self.catalog.require(key)
            actual = monthly_series(definition, ctx, months)
            target = targets.series(key, effective_dimension(definition, business_unit))
            series[key] = [
                SeriesPoint(month=month, actual=actual.get(month), target=target.get(month))
                for month in months
            ]
        return series

    # ------------------------------------------------------------------
    # targets / quarter summary / series
    # ------------------------------------------------------------------

    async def get_targets(self, year: Optional[int] = None) -> TargetsResponse:
        """Resolved Q1..Q4 and FY targets for every KR."""
        year = year or self.default_year
        fetch_keys = self.registry.metric_keys()
        targets = await self.store.fetch_targets(self.calendar.fiscal_months(year), fetch_keys)
        resolver = TargetResolver(self.catalog, self.registry, targets, self.calendar)
        items = []
        for kr in self.registry.key_results:
            items.append(KRTargetsResponse(
                kr_id=kr.id,
                metric_key=kr.metric_key,
                targets={
                    label: resolver.resolve_target(kr.metric_key, year, label, kr=kr)
                    for label in (*QUARTER_LABELS, FULL_YEAR)
                },
            ))
        return TargetsResponse(year=year, items=items)

    async def get_quarter_summary(self, year: Optional[int] = None) -> QuarterSummaryResponse:
        """Plan, actual, variance and status per quarter and full year for every metric."""
        generated_at = self.clock()
        as_of = generated_at.date()
        year = year or self.default_year

        cache_key = build_cache_key(QUARTER_SUMMARY_CACHE_PREFIX, {"year": year})
        cached = self.cache.get(cache_key)
        if cached is not None:
            return _mark_cache_hit(cached)

        metric_keys = self.catalog.keys()
        year_months = self.calendar.fiscal_months(year)
        actuals = await self.store.fetch_actuals(year_months, metric_keys)
        targets = await self.store.fetch_targets(year_months, metric_keys)
        resolver = TargetResolver(self.catalog, self.registry, targets, self.calendar)

        windows = [self.calendar.window(label, year) for label in (*QUARTER_LABELS, FULL_YEAR)]
        readings_by_window = {}
        for window in windows:
            ctx = SnapshotContext(as_of, window, ALL_BUSINESS_UNITS, actuals, self.catalog)
            readings_by_window[window.label] = await self.sources.collect(ctx, metric_keys)

        metrics = []
        for definition in self.catalog:
            periods = []
            for window in windows:
                reading = readings_by_window[window.label][definition.metric_key]
                target = resolver.resolve_target(definition.metric_key, year, window)
                result = self._rollup(definition, window, reading, target)
                periods.append(PeriodRollup(
                    period=window.label,
                    plan=result.target,
                    actual=result.actual,
                    variance=result.variance,
                    variance_pct=result.variance_pct,
                    progress=result.progress,
                    status=result.status,
                ))
            metrics.append(QuarterMetricSummary(
                metric_key=definition.metric_key,
                title=definition.title,
                unit=definition.unit,
                direction=definition.direction,
                period_type=definition.period_type,
                periods=periods,
            ))

        response = QuarterSummaryResponse(
            year=year,
            metrics=metrics,
            meta=QuarterSummaryMeta(
                cache_hit=False,
                generated_at=generated_at,
                as_of=as_of,
                current_quarter=self.calendar.quarter_of(as_of),
            ),
        )
        self.cache.set(cache_key, response)
        return response

    async def get_metric_series(self, metric_key: str, start: str, end: str) -> MetricSeriesResponse:
        """Monthly actual and target for one metric between two YYYY-MM bounds, inclusive."""
        definition = self.catalog.require(metric_key)
        months = months_between(start, end)
        if not months:
            raise ValidationError("end", "end must not be before start")
        if len(months) > MAX_SERIES_MONTHS:
            raise ValidationError("end", f"A series covers at most {MAX_SERIES_MONTHS} months")

        cache_key = build_cache_key(METRIC_SERIES_CACHE_PREFIX, {"metricKey": metric_key, "start": start, "end": end})
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        fetch_keys = self._with_components([metric_key])
        actuals = await self.store.fetch_actuals(months, fetch_keys)
        targets = await self.store.fetch_targets(months, [metric_key])

        window = PeriodWindow(label="range", fiscal_year=int(months[-1][:4]), months=tuple(months))
        ctx = SnapshotContext(self.clock().date(), window, ALL_BUSINESS_UNITS, actuals, self.catalog)
        actual = monthly_series(definition, ctx, months)
        target = targets.series(metric_key, definition.default_dimension)

        response = MetricSeriesResponse(
            metric_key=metric_key,
            title=definition.title,
            unit=definition.unit,
            start=months[0],
            end=months[-1],
            points=[
                SeriesPoint(month=month, actual=actual.get(month), target=target.get(month))
                for month in months
            ],
        )
        self.cache.set(cache_key, response)
        return response
