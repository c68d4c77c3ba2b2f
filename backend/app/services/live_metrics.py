"""
Live metric sources.

A registry of metric key -> async value provider. Providers for one summary run
concurrently; a provider that raises or finds no data yields an Unavailable
reading instead of failing the summary.

Unless a provider is registered for a key, metrics are read from the monthly
actuals prefetched for the request: plain metrics roll up their own series,
derived metrics evaluate their formula month by month and roll up the result.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Dict, Iterable, Optional, Union

from app.services.metric_catalog import MetricCatalog, MetricDefinition, effective_dimension
from app.services.metric_store import SeriesIndex
from app.services.periods import PeriodWindow
from app.services.rollup import aggregate_values

logger = logging.getLogger(__name__)

NO_DATA = "no_data"
SOURCE_ERROR = "source_error"


@dataclass(frozen=True)
class Unavailable:
    """A metric whose value could not be produced for this request."""
    metric_key: str
    reason: str
    detail: Optional[str] = None


Reading = Union[float, Unavailable]


@dataclass(frozen=True)
class SnapshotContext:
    """Everything a provider may read. Built once per summary."""
    as_of: date
    window: PeriodWindow
    business_unit: str
    actuals: SeriesIndex
    catalog: MetricCatalog


LiveValueProvider = Callable[[SnapshotContext, MetricDefinition], Awaitable[Optional[float]]]


def _evaluate(tokens, values: Dict[str, float]) -> Optional[float]:
    result = values.get(tokens[0])
    if result is None:
        return None
    for operator, key in zip(tokens[1::2], tokens[2::2]):
        operand = values.get(key)
        if operand is None:
            return None
        if operator == "+":
            result += operand
        elif operator == "-":
            result -= operand
        elif operator == "*":
            result *= operand
        else:
            if operand == 0:
                return None
            result /= operand
    return result


def monthly_series(definition: MetricDefinition, ctx: SnapshotContext, months: Iterable[str]) -> Dict[str, float]:
    """
    Month-keyed actuals for a metric under the context's business unit.

    Ingested rows for a derived metric take precedence over its formula.
    """
    dimension = effective_dimension(definition, ctx.business_unit)
    months = list(months)
    own = ctx.actuals.series(definition.metric_key, dimension)
    if not definition.is_derived or any(m in own for m in months):
        return {m: own[m] for m in months if m in own}

    tokens = definition.formula_tokens
    component_series = {}
    for key in definition.components:
        component = ctx.catalog.require(key)
        component_series[key] = monthly_series(component, ctx, months)

    result = {}
    for month in months:
        value = _evaluate(tokens, {k: s[month] for k, s in component_series.items() if month in s})
        if value is not None:
            result[month] = value
    return result


async def rollup_provider(ctx: SnapshotContext, definition: MetricDefinition) -> Optional[float]:
    series = monthly_series(definition, ctx, ctx.window.months)
    return aggregate_values([series.get(m) for m in ctx.window.months], definition.period_type)


class LiveMetricSources:
    """Registry of per-metric live value providers."""

    def __init__(self, default: LiveValueProvider = rollup_provider):
        self._providers: Dict[str, LiveValueProvider] = {}
        self._default = default

    def register(self, metric_key: str, provider: Optional[LiveValueProvider] = None):
        """Register a provider; usable as a decorator when `provider` is omitted."""
        if provider is not None:
            self._providers[metric_key] = provider
            return provider

        def decorator(func: LiveValueProvider) -> LiveValueProvider:
            self._providers[metric_key] = func
            return func
        return decorator

    def provider_for(self, metric_key: str) -> LiveValueProvider:
        return self._providers.get(metric_key, self._default)

    async def _read(self, ctx: SnapshotContext, metric_key: str) -> Reading:
        definition = ctx.catalog.require(metric_key)
        try:
            value = await self.provider_for(metric_key)(ctx, definition)
        except Exception as e:
            logger.warning(f"Live source for {metric_key} failed: {e.__class__.__name__}: {e}")
            return Unavailable(metric_key, SOURCE_ERROR, str(e))
        if value is None:
            return Unavailable(metric_key, NO_DATA)
        return float(value)

    async def collect(self, ctx: SnapshotContext, metric_keys: Iterable[str]) -> Dict[str, Reading]:
        """Read every metric concurrently; failures become Unavailable readings."""
        keys = list(dict.fromkeys(metric_keys))
        readings = await asyncio.gather(*(self._read(ctx, key) for key in keys))
        return dict(zip(keys, readings))


default_sources = LiveMetricSources()
