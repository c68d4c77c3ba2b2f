"""
Tests for the rollup calculator.

Covers:
- Period aggregation for flow, stock and average metrics
- Variance with zero and missing plans
- Signal status per direction
- Progress toward target
"""
import pytest

from app.core.errors import NotFoundError
from app.models.metric import MetricUnit, MetricDirection, MetricPeriodType
from app.services.periods import FiscalCalendar
from app.services.rollup import (
    SignalStatus, aggregate_values, compute_period_value, compute_variance,
    compute_signal_status, compute_progress, compute_rollup,
)

HIGHER = MetricDirection.HIGHER_IS_BETTER
LOWER = MetricDirection.LOWER_IS_BETTER
BAND = MetricDirection.TARGET_BAND


# ============================================================================
# PERIOD VALUE
# ============================================================================

class TestPeriodValue:

    def test_flow_skips_missing_months(self):
        assert aggregate_values([100, 150, None, 200], MetricPeriodType.FLOW) == 450

    def test_stock_takes_last_month_with_data(self):
        assert aggregate_values([10, 12, 15], MetricPeriodType.STOCK) == 15
        assert aggregate_values([10, 12, None], MetricPeriodType.STOCK) == 12

    def test_average_of_available_months(self):
        assert aggregate_values([2.0, None, 4.0], MetricPeriodType.AVERAGE) == pytest.approx(3.0)

    @pytest.mark.parametrize("period_type", list(MetricPeriodType))
    def test_no_data_is_none(self, period_type):
        assert aggregate_values([None, None, None], period_type) is None
        assert aggregate_values([], period_type) is None

    def test_zero_is_data(self):
        assert aggregate_values([0, None], MetricPeriodType.FLOW) == 0

    def test_series_mapping_over_quarter(self):
        series = {"2026-01": 400000, "2026-02": 450000, "2026-03": 486800, "2026-04": 999}
        value = compute_period_value("mrr_active", 2026, "Q1", series)
        assert value == pytest.approx(1336800)

    def test_partial_quarter_is_partial_sum(self):
        series = {"2026-01": 400000, "2026-02": 450000}
        assert compute_period_value("mrr_active", 2026, "Q1", series) == pytest.approx(850000)

    def test_period_type_from_catalog(self):
        series = {"2026-01": 320, "2026-02": 331, "2026-03": 346}
        # clients_active is a stock metric
        assert compute_period_value("clients_active", 2026, "Q1", series) == 346

    def test_explicit_period_type_wins(self):
        series = {"2026-01": 1, "2026-02": 2, "2026-03": 3}
        value = compute_period_value("clients_active", 2026, "Q1", series, MetricPeriodType.FLOW)
        assert value == 6

    def test_ordered_values(self):
        assert compute_period_value("mrr_active", 2026, "Q1", [100, 150, None, 200]) == 450

    def test_shifted_calendar(self):
        series = {"2025-07": 1, "2025-08": 2, "2025-09": 3, "2026-01": 100}
        value = compute_period_value("mrr_active", 2026, "Q1", series, calendar=FiscalCalendar(7))
        assert value == 6

    def test_unknown_metric_without_period_type(self):
        with pytest.raises(NotFoundError):
            compute_period_value("not_a_metric", 2026, "Q1", {"2026-01": 1})


# ============================================================================
# VARIANCE
# ============================================================================

class TestVariance:

    def test_variance(self):
        result = compute_variance(110, 100)
        assert result.variance == 10
        assert result.variance_pct == pytest.approx(10.0)

    def test_zero_plan_has_no_percentage(self):
        assert compute_variance(10, 0) == (10, None)

    def test_negative_plan_uses_magnitude(self):
        result = compute_variance(-50, -100)
        assert result.variance == 50
        assert result.variance_pct == pytest.approx(50.0)

    @pytest.mark.parametrize("actual,plan", [(None, 100), (100, None), (None, None)])
    def test_missing_side(self, actual, plan):
        assert compute_variance(actual, plan) == (None, None)


# ============================================================================
# SIGNAL STATUS
# ============================================================================

class TestSignalStatus:

    @pytest.mark.parametrize("actual,target", [(None, 100), (100, None), (None, None)])
    def test_gray_without_data(self, actual, target):
        for direction in MetricDirection:
            assert compute_signal_status(actual, target, direction, MetricUnit.CURRENCY) == SignalStatus.GRAY

    @pytest.mark.parametrize("actual,expected", [
        (55, SignalStatus.GREEN),
        (50, SignalStatus.GREEN),
        (46, SignalStatus.YELLOW),
        (45, SignalStatus.YELLOW),
        (40, SignalStatus.RED),
    ])
    def test_higher_is_better(self, actual, expected):
        assert compute_signal_status(actual, 50, HIGHER, MetricUnit.CURRENCY) == expected

    @pytest.mark.parametrize("actual,expected", [
        (45, SignalStatus.GREEN),
        (50, SignalStatus.GREEN),
        (53, SignalStatus.YELLOW),
        (55, SignalStatus.YELLOW),
        (70, SignalStatus.RED),
    ])
    def test_lower_is_better(self, actual, expected):
        assert compute_signal_status(actual, 50, LOWER, MetricUnit.PERCENTAGE) == expected

    def test_higher_attainment_is_actual_over_target(self):
        # 8.1 / 9 * 100 lands just under 90 in floating point
        assert compute_signal_status(8.1, 9.0, HIGHER) == SignalStatus.RED
        assert compute_signal_status(9.0, 10.0, HIGHER) == SignalStatus.YELLOW

    def test_lower_overshoot_is_relative_to_target(self):
        # (15.51 - 14.1) / 14.1 * 100 lands just over 10 in floating point
        assert compute_signal_status(15.51, 14.1, LOWER) == SignalStatus.RED
        assert compute_signal_status(11.0, 10.0, LOWER) == SignalStatus.YELLOW

    def test_higher_with_zero_target(self):
        assert compute_signal_status(0, 0, HIGHER) == SignalStatus.GREEN
        assert compute_signal_status(-1, 0, HIGHER) == SignalStatus.RED

    def test_lower_with_zero_target(self):
        assert compute_signal_status(0, 0, LOWER) == SignalStatus.GREEN
        assert compute_signal_status(1, 0, LOWER) == SignalStatus.RED

    def test_higher_with_negative_target(self):
        # A smaller loss than planned is ahead of plan
        assert compute_signal_status(-80, -100, HIGHER) == SignalStatus.GREEN
        assert compute_signal_status(-105, -100, HIGHER) == SignalStatus.YELLOW
        assert compute_signal_status(-150, -100, HIGHER) == SignalStatus.RED

    @pytest.mark.parametrize("actual,expected", [
        (100, SignalStatus.GREEN),
        (104, SignalStatus.GREEN),
        (93, SignalStatus.YELLOW),
        (111, SignalStatus.RED),
    ])
    def test_target_band_count(self, actual, expected):
        assert compute_signal_status(actual, 100, BAND, MetricUnit.COUNT) == expected

    @pytest.mark.parametrize("actual,expected", [
        (50.5, SignalStatus.GREEN),
        (48.5, SignalStatus.YELLOW),
        (53.0, SignalStatus.RED),
    ])
    def test_target_band_percentage_is_tighter(self, actual, expected):
        assert compute_signal_status(actual, 50.0, BAND, MetricUnit.PERCENTAGE) == expected


# ============================================================================
# PROGRESS / ROLLUP
# ============================================================================

class TestProgress:

    def test_higher_is_attainment(self):
        assert compute_progress(1336800, 1340000, HIGHER) == pytest.approx(99.761, abs=1e-3)

    def test_higher_can_exceed_100(self):
        assert compute_progress(120, 100, HIGHER) == pytest.approx(120.0)

    def test_lower_within_target_is_full(self):
        assert compute_progress(4.0, 6.0, LOWER) == 100.0

    def test_lower_overshoot_reduces_progress(self):
        assert compute_progress(6.6, 6.0, LOWER) == pytest.approx(90.0)

    def test_band_deviation(self):
        assert compute_progress(95, 100, BAND) == pytest.approx(95.0)
        assert compute_progress(300, 100, BAND) == 0.0

    def test_none_cases(self):
        assert compute_progress(None, 100, HIGHER) is None
        assert compute_progress(100, None, HIGHER) is None
        assert compute_progress(100, 0, HIGHER) is None


class TestComputeRollup:

    def test_mrr_first_quarter(self, catalog):
        definition = catalog.require("mrr_active")
        window = FiscalCalendar().window("Q1", 2026)
        actual = compute_period_value("mrr_active", 2026, window, {
            "2026-01": 400000, "2026-02": 450000, "2026-03": 486800,
        })

        result = compute_rollup(definition, window, actual, 1340000)

        assert result.actual == pytest.approx(1336800)
        assert result.variance == pytest.approx(-3200)
        assert result.variance_pct == pytest.approx(-0.2388, abs=1e-4)
        assert result.progress == pytest.approx(99.8, abs=0.05)
        assert result.status == SignalStatus.YELLOW
        assert result.months == ("2026-01", "2026-02", "2026-03")

    def test_missing_actual_is_gray(self, catalog):
        definition = catalog.require("ebitda")
        window = FiscalCalendar().window("Q2", 2026)
        result = compute_rollup(definition, window, None, 1152814)
        assert result.status == SignalStatus.GRAY
        assert result.progress is None
        assert result.variance is None
