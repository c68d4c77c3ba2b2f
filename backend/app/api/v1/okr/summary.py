"""
OKR summary endpoints.

Provides the dashboard summary tree, the quarter summary and single-metric
monthly series. Responses are served from the response cache when present.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from app.core.deps import get_current_user
from app.models.user import User
from app.schemas.okr import SummaryTree, QuarterSummaryResponse, MetricSeriesResponse
from app.services.okr_dashboard import DashboardAggregator
from app.api.v1.okr.deps import get_aggregator

router = APIRouter()


@router.get("/summary", response_model=SummaryTree)
async def get_okr_summary(
    period: str = Query("YTD", description="YTD, Q1..Q4, FY, Last12m or M1..M12"),
    bu: str = Query("all", description="Business unit, or 'all'"),
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Fiscal year; defaults to the OKR year"),
    aggregator: DashboardAggregator = Depends(get_aggregator),
    current_user: User = Depends(get_current_user)
):
    """
    Get the OKR summary tree.

    Objectives -> Key Results (current value, target, progress, status) with
    initiatives, coverage, highlight cards and monthly series. `meta.cacheHit`
    tells whether the response came from the cache.
    """
    return await aggregator.get_summary(period, bu, year)


@router.get("/quarter-summary", response_model=QuarterSummaryResponse)
async def get_quarter_summary(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    aggregator: DashboardAggregator = Depends(get_aggregator),
    current_user: User = Depends(get_current_user)
):
    """Plan vs actual per quarter and full year for every catalog metric."""
    return await aggregator.get_quarter_summary(year)


@router.get("/metric-series", response_model=MetricSeriesResponse)
async def get_metric_series(
    metric_key: str = Query(..., alias="metricKey"),
    start: str = Query(..., description="First month, YYYY-MM"),
    end: str = Query(..., description="Last month, YYYY-MM"),
    aggregator: DashboardAggregator = Depends(get_aggregator),
    current_user: User = Depends(get_current_user)
):
    """Monthly actual and target for one metric (at most 36 months)."""
    return await aggregator.get_metric_series(metric_key, start, end)
