"""
OKR module - Business Plan targets vs actuals for the dashboard.

This module handles:
- Summary tree (objectives, key results, initiatives, highlights, series)
- Catalog reads (metrics, objectives, KRs, targets, initiatives)
- KR check-ins (append-only ledger)
- Response cache administration
"""
from fastapi import APIRouter
from app.api.v1.okr.summary import router as summary_router
from app.api.v1.okr.catalog import router as catalog_router
from app.api.v1.okr.checkins import router as checkins_router
from app.api.v1.okr.cache import router as cache_router

okr_router = APIRouter(prefix="/okr", tags=["okr"])
okr_router.include_router(summary_router)
okr_router.include_router(catalog_router)
okr_router.include_router(checkins_router)
okr_router.include_router(cache_router)

__all__ = ["okr_router"]
