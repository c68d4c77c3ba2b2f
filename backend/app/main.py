"""
BizPulse OKR API - Main entry point.

Backend of the BizPulse business dashboard. This service hosts the OKR /
Business Plan module: it rolls monthly actuals up against monthly targets for
a fixed catalog of metrics and serves the result as an Objectives -> Key
Results -> Initiatives tree with red/yellow/green status.

Endpoints are available under /api/v1/okr/ paths; /api/health is public.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.core.logging import setup_logging
from app.db.base import init_db, async_session_maker
from app.services.metric_catalog import load_catalog
from app.services.metric_store import TargetActualStore
from app.services.okr_registry import build_default_registry
from app.services.response_cache import InMemoryResponseCache

from app.api.v1 import health
from app.api.v1.okr import okr_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    setup_logging()
    # Note: In production, use Alembic migrations instead
    await init_db()

    # Catalog and registry are validated here; an inconsistency stops startup
    async with async_session_maker() as session:
        catalog = await load_catalog(TargetActualStore(session), from_db=settings.OKR_CATALOG_FROM_DB)
    app.state.okr_catalog = catalog
    app.state.okr_registry = build_default_registry(catalog)
    logger.info(f"{settings.APP_NAME} started ({settings.APP_ENV}), OKR year {settings.OKR_YEAR}")
    yield
    app.state.okr_cache.clear()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="""
BizPulse OKR API - Business Plan targets vs actuals.

## Endpoints

- **Summary**: objectives, key results, initiatives, highlights and series per period
- **Catalog**: metrics, objectives, key results, resolved targets, initiatives
- **Check-ins**: append-only confidence and commentary per key result
- **Cache**: admin flush and statistics
    """,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)

app.state.okr_cache = InMemoryResponseCache(
    default_ttl=settings.OKR_CACHE_TTL_SECONDS,
    max_entries=settings.OKR_CACHE_MAX_ENTRIES,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# HEALTH CHECK
# ============================================================================

app.include_router(
    health.router,
    prefix="/api",
    tags=["health"]
)


# ============================================================================
# V1 API ENDPOINTS
# ============================================================================

# OKR module - /api/v1/okr/*
app.include_router(
    okr_router,
    prefix=settings.API_V1_PREFIX,
)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

register_exception_handlers(app)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    if settings.DEBUG:
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc)}
        )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
