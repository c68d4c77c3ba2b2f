"""
OKR response cache administration (admin only).
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends

from app.core.deps import require_admin
from app.models.user import User
from app.schemas.okr import CacheInvalidateRequest, CacheInvalidateResponse, CacheStatsResponse
from app.services.response_cache import ResponseCache
from app.api.v1.okr.deps import get_response_cache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cache")


@router.post("/invalidate", response_model=CacheInvalidateResponse)
async def invalidate_cache(
    data: Optional[CacheInvalidateRequest] = None,
    cache: ResponseCache = Depends(get_response_cache),
    current_user: User = Depends(require_admin)
):
    """Flush entries whose key contains `pattern`, or the whole cache."""
    pattern = data.pattern if data else None
    if pattern:
        count = cache.invalidate_by_pattern(pattern)
    else:
        count = cache.clear()
    logger.info(f"OKR cache invalidated by {current_user.email}: {count} entries (pattern={pattern!r})")
    return CacheInvalidateResponse(invalidated=count, pattern=pattern)


@router.get("/stats", response_model=CacheStatsResponse)
async def get_cache_stats(
    cache: ResponseCache = Depends(get_response_cache),
    current_user: User = Depends(require_admin)
):
    """Entry count, keys and hit/miss counters."""
    return CacheStatsResponse(**cache.stats())
