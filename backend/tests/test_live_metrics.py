"""
Tests for live metric sources.
"""
import pytest
from datetime import date

from app.services.live_metrics import (
    LiveMetricSources, SnapshotContext, Unavailable, NO_DATA, SOURCE_ERROR, monthly_series,
)
from app.services.metric_store import SeriesIndex
from app.services.periods import FiscalCalendar

Q1_MONTHS = ("2026-01", "2026-02", "2026-03")


def _context(catalog, actuals: SeriesIndex, period="Q1", business_unit="all") -> SnapshotContext:
    return SnapshotContext(
        as_of=date(2026, 4, 15),
        window=FiscalCalendar().window(period, 2026),
        business_unit=business_unit,
        actuals=actuals,
        catalog=catalog,
    )


def _add(index: SeriesIndex, metric_key, values, dimension=None) -> None:
    for month, value in values.items():
        index.add(metric_key, dimension, month, value)


class TestMonthlySeries:

    def test_plain_metric(self, catalog):
        index = SeriesIndex()
        _add(index, "revenue_net", {"2026-01": 100, "2026-03": 300})
        ctx = _context(catalog, index)

        series = monthly_series(catalog.require("revenue_net"), ctx, Q1_MONTHS)

        assert series == {"2026-01": 100, "2026-03": 300}

    def test_derived_metric_per_month(self, catalog):
        index = SeriesIndex()
        _add(index, "revenue_net", {"2026-01": 1_600_000, "2026-02": 1_700_000, "2026-03": 1_800_000})
        _add(index, "headcount_total", {"2026-01": 100, "2026-02": 100, "2026-03": 0})
        ctx = _context(catalog, index)

        series = monthly_series(catalog.require("revenue_per_head"), ctx, Q1_MONTHS)

        # March divides by zero and is dropped
        assert series == {"2026-01": 16000, "2026-02": 17000}

    def test_ingested_rows_win_over_formula(self, catalog):
        index = SeriesIndex()
        _add(index, "revenue_per_head", {"2026-01": 12345})
        _add(index, "revenue_net", {"2026-01": 1_000_000})
        _add(index, "headcount_total", {"2026-01": 100})
        ctx = _context(catalog, index)

        series = monthly_series(catalog.require("revenue_per_head"), ctx, Q1_MONTHS)

        assert series == {"2026-01": 12345}

    def test_business_unit_series(self, catalog):
        index = SeriesIndex()
        _add(index, "mrr_active", {"2026-01": 1000})
        _add(index, "mrr_active", {"2026-01": 250}, ("business_unit", "tech"))
        ctx = _context(catalog, index, business_unit="tech")

        assert monthly_series(catalog.require("mrr_active"), ctx, Q1_MONTHS) == {"2026-01": 250}


class TestCollect:

    @pytest.mark.asyncio
    async def test_default_provider_rolls_up_actuals(self, catalog):
        index = SeriesIndex()
        _add(index, "mrr_active", {"2026-01": 400000, "2026-02": 450000, "2026-03": 486800})
        sources = LiveMetricSources()

        readings = await sources.collect(_context(catalog, index), ["mrr_active"])

        assert readings["mrr_active"] == pytest.approx(1336800)

    @pytest.mark.asyncio
    async def test_derived_metric_aggregates_by_its_own_period_type(self, catalog):
        index = SeriesIndex()
        _add(index, "revenue_net", {"2026-01": 1_500_000, "2026-02": 1_700_000})
        _add(index, "headcount_total", {"2026-01": 100, "2026-02": 100})
        sources = LiveMetricSources()

        readings = await sources.collect(_context(catalog, index), ["revenue_per_head"])

        # average of 15000 and 17000
        assert readings["revenue_per_head"] == pytest.approx(16000)

    @pytest.mark.asyncio
    async def test_no_data(self, catalog):
        sources = LiveMetricSources()
        readings = await sources.collect(_context(catalog, SeriesIndex()), ["ebitda"])
        assert readings["ebitda"] == Unavailable("ebitda", NO_DATA)

    @pytest.mark.asyncio
    async def test_failing_provider_is_isolated(self, catalog):
        index = SeriesIndex()
        _add(index, "ebitda", {"2026-01": 500000})
        sources = LiveMetricSources()

        @sources.register("nps")
        async def broken(ctx, definition):
            raise ConnectionError("survey service down")

        readings = await sources.collect(_context(catalog, index), ["nps", "ebitda"])

        assert isinstance(readings["nps"], Unavailable)
        assert readings["nps"].reason == SOURCE_ERROR
        assert "survey service down" in readings["nps"].detail
        assert readings["ebitda"] == 500000

    @pytest.mark.asyncio
    async def test_registered_provider_replaces_default(self, catalog):
        sources = LiveMetricSources()

        async def fixed(ctx, definition):
            return 42

        sources.register("nps", fixed)
        readings = await sources.collect(_context(catalog, SeriesIndex()), ["nps"])

        assert readings["nps"] == 42.0
        assert sources.provider_for("nps") is fixed

    @pytest.mark.asyncio
    async def test_duplicate_keys_are_read_once(self, catalog):
        calls = []
        sources = LiveMetricSources()

        @sources.register("nps")
        async def counting(ctx, definition):
            calls.append(definition.metric_key)
            return 1

        readings = await sources.collect(_context(catalog, SeriesIndex()), ["nps", "nps"])

        assert list(readings) == ["nps"]
        assert calls == ["nps"]
