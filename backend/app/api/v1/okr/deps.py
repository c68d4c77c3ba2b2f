"""
Dependencies for the OKR endpoints.

The catalog, registry and response cache live on `app.state`; they are set up
by the application lifespan, or lazily from the built-in configuration when
the app runs without it.
"""
from datetime import datetime
from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.base import get_db
from app.models.base import utcnow
from app.services.checkins import CheckInLedger
from app.services.metric_catalog import MetricCatalog, build_default_catalog
from app.services.okr_dashboard import DashboardAggregator
from app.services.okr_registry import OKRRegistry, build_default_registry
from app.services.periods import FiscalCalendar
from app.services.response_cache import ResponseCache, InMemoryResponseCache


def get_catalog(request: Request) -> MetricCatalog:
    catalog = getattr(request.app.state, "okr_catalog", None)
    if catalog is None:
        catalog = build_default_catalog()
        request.app.state.okr_catalog = catalog
    return catalog


def get_registry(request: Request, catalog: MetricCatalog = Depends(get_catalog)) -> OKRRegistry:
    registry = getattr(request.app.state, "okr_registry", None)
    if registry is None:
        registry = build_default_registry(catalog)
        request.app.state.okr_registry = registry
    return registry


def get_response_cache(request: Request) -> ResponseCache:
    cache = getattr(request.app.state, "okr_cache", None)
    if cache is None:
        cache = InMemoryResponseCache(
            default_ttl=settings.OKR_CACHE_TTL_SECONDS,
            max_entries=settings.OKR_CACHE_MAX_ENTRIES,
        )
        request.app.state.okr_cache = cache
    return cache


def get_clock() -> Callable[[], datetime]:
    return utcnow


def get_calendar() -> FiscalCalendar:
    return FiscalCalendar(settings.FISCAL_YEAR_START_MONTH)


def get_aggregator(
    db: AsyncSession = Depends(get_db),
    catalog: MetricCatalog = Depends(get_catalog),
    registry: OKRRegistry = Depends(get_registry),
    cache: ResponseCache = Depends(get_response_cache),
    calendar: FiscalCalendar = Depends(get_calendar),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> DashboardAggregator:
    return DashboardAggregator(db, catalog, registry, cache, calendar=calendar, clock=clock)


def get_ledger(
    db: AsyncSession = Depends(get_db),
    registry: OKRRegistry = Depends(get_registry),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> CheckInLedger:
    return CheckInLedger(db, registry, clock=clock)
