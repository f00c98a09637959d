"""
Embed API Routes

Provides endpoints for:
- Proxying external media server-side (the caller's address never
  reaches the remote host)

Modes:
- relay: respond with the fetched bytes, reading through the memory cache
- persist: store the fetched file and respond with a JSON link to it
"""

import logging
from typing import Dict

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, Response

from media_store.ingest import IngestPipeline
from media_store.models import MediaCategory

logger = logging.getLogger(__name__)

BROWSER_CACHE_SECONDS = 86400


def create_embed_router(pipelines: Dict[MediaCategory, IngestPipeline], mode: str = "relay") -> APIRouter:
    """
    Build the embed router.

    Args:
        pipelines: IngestPipeline per category
        mode: "relay" or "persist"
    """
    router = APIRouter(tags=["Embed"])

    @router.get("/v1/embed")
    @router.get("/embed", include_in_schema=False)
    @router.get("/external", include_in_schema=False)
    async def embed_external(
        url: str = Query(..., description="URL of the media to proxy"),
        kind: MediaCategory = Query(MediaCategory.IMAGE, description="Expected media category"),
    ):
        """
        Proxy an external file.

        Example:
            GET /v1/embed?url=https://example.com/cat.png
        """
        pipeline = pipelines[kind]

        if mode == "persist":
            asset = await pipeline.ingest_remote(url)
            return JSONResponse(content={"data": {"link": pipeline.link_for(asset.name)}})

        media = await pipeline.relay_remote(url)
        return Response(
            content=media.data,
            media_type=media.kind.mime_type,
            headers={
                "X-Cache": "HIT" if media.from_cache else "MISS",
                "Cache-Control": f"max-age={BROWSER_CACHE_SECONDS}",
            },
        )

    return router
