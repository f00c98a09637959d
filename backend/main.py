"""
Media Host Application

Wires configuration, stores, cache, proxy fetcher and routers into one
FastAPI app.

Run:
    MEDIA_HOST_CONFIG=./config.toml python main.py
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app_config import MediaHostConfig, load_config
from cache import EphemeralCache, create_cache_router
from image_proxy import ProxyFetcher
from image_proxy.routes_fastapi import create_embed_router
from media_store.asset_store import AssetStore, DiskAssetStore, MemoryAssetStore
from media_store.errors import ConfigError, MediaHostError
from media_store.ingest import IngestPipeline
from media_store.models import MediaCategory
from media_store.routes_fastapi import create_media_router, media_error_handler

logger = logging.getLogger(__name__)


def build_store(config: MediaHostConfig, category: MediaCategory) -> AssetStore:
    """Create and bootstrap the store for one category. Raises ConfigError."""
    if config.storage.backend == "memory":
        store: AssetStore = MemoryAssetStore()
    else:
        store = DiskAssetStore(config.storage_dir_for(category))
    store.ensure_ready()
    return store


def build_fetcher(config: MediaHostConfig, transport=None) -> ProxyFetcher:
    return ProxyFetcher(
        domain=config.domain,
        max_bytes={category: config.max_size_for(category) for category in MediaCategory},
        timeout=config.proxy.timeout_seconds,
        user_agent=config.proxy.user_agent,
        transport=transport,
    )


def create_app(
    config: MediaHostConfig,
    fetcher: Optional[ProxyFetcher] = None,
) -> FastAPI:
    """
    Build the application.

    Storage bootstrap happens here, so a bad storage location fails before
    the server accepts any request.

    Args:
        config: Loaded configuration
        fetcher: Optional pre-built fetcher (tests inject a mock transport)
    """
    stores = {category: build_store(config, category) for category in MediaCategory}

    cache = None
    if config.cache.enabled:
        cache = EphemeralCache(
            ttl_seconds=config.cache.ttl_seconds,
            max_bytes=config.cache.max_bytes,
        )

    fetcher = fetcher or build_fetcher(config)

    pipelines = {
        category: IngestPipeline(
            category=category,
            store=stores[category],
            base_url=config.base_url,
            cache=cache,
            fetcher=fetcher,
            verify_images=config.uploads.verify_images,
        )
        for category in MediaCategory
    }

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if cache is not None:
            await cache.start_cleanup_task(config.cache.cleanup_interval_seconds)
        logger.info(f"[MediaHost] Serving {config.base_url} (storage={config.storage.backend}, embed={config.proxy.embed_mode})")
        try:
            yield
        finally:
            if cache is not None:
                await cache.stop_cleanup_task()
            await fetcher.close()

    app = FastAPI(title="Media Host", lifespan=lifespan)
    app.state.config = config
    app.state.cache = cache
    app.state.pipelines = pipelines

    app.add_exception_handler(MediaHostError, media_error_handler)

    for category, pipeline in pipelines.items():
        app.include_router(create_media_router(
            pipeline,
            max_size=config.max_size_for(category),
            multipart_mode=config.uploads.multipart_mode,
        ))
    app.include_router(create_embed_router(pipelines, mode=config.proxy.embed_mode))
    if cache is not None:
        app.include_router(create_cache_router(cache))

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return JSONResponse(content={
            "status": "healthy",
            "service": "media-host",
            "storage_backend": config.storage.backend,
            "embed_mode": config.proxy.embed_mode,
            "cache": cache.stats() if cache is not None else None,
        })

    return app


def main() -> int:
    try:
        config = load_config()
    except ConfigError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.critical(f"[MediaHost] {e}")
        return 1

    logging.basicConfig(
        level=config.logging.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        app = create_app(config)
    except ConfigError as e:
        logger.critical(f"[MediaHost] {e}")
        return 1

    uvicorn.run(app, host=config.ip, port=config.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
