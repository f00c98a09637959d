"""
Cache API Routes

Provides HTTP endpoints for cache operations:
- GET    /v1/cache/stats    - Cache statistics
- GET    /v1/cache/list     - Cached entry summaries
- POST   /v1/cache/cleanup  - Sweep idle entries now
- DELETE /v1/cache/clear    - Drop every entry
"""

from typing import List

from fastapi import APIRouter
from pydantic import BaseModel

from .memory_store import EphemeralCache


# ============================================
# Response Models
# ============================================

class CacheStatsResponse(BaseModel):
    """Response model for stats endpoint"""
    total_entries: int
    total_size_bytes: int
    total_size_mb: float
    max_size_mb: float
    usage_percent: float
    hits: int
    misses: int
    hit_rate: float
    inflight_loads: int
    ttl_hours: float


class CacheSummary(BaseModel):
    key: str
    size_bytes: int
    created_at: str
    last_access: str


class CacheListResponse(BaseModel):
    success: bool
    count: int
    items: List[CacheSummary]


# ============================================
# Router
# ============================================

def create_cache_router(cache: EphemeralCache) -> APIRouter:
    """Build the cache router around an injected cache instance."""
    router = APIRouter(prefix="/v1/cache", tags=["cache"])

    @router.get("/stats", response_model=CacheStatsResponse)
    async def get_cache_stats():
        return CacheStatsResponse(**cache.stats())

    @router.get("/list", response_model=CacheListResponse)
    async def list_cache():
        entries = cache.list_entries()
        return CacheListResponse(
            success=True,
            count=len(entries),
            items=[CacheSummary(**e) for e in entries],
        )

    @router.post("/cleanup")
    async def cleanup_cache():
        """
        Remove idle entries.

        This also runs periodically in the background,
        but can be triggered manually if needed.
        """
        removed = cache.sweep_expired()
        return {
            "success": True,
            "removed_entries": removed,
            "current_stats": cache.stats(),
        }

    @router.delete("/clear")
    async def clear_cache():
        """
        Clear all cache entries.

        Stored assets are untouched; later requests read through again.
        """
        count = cache.clear()
        return {
            "success": True,
            "message": f"Cleared {count} cache entries",
            "deleted_count": count,
        }

    return router
