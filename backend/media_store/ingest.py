"""
Ingest Pipeline

Orchestrates one request from raw bytes to a stored asset or a typed error:

    bytes (body | multipart | proxy fetch)
      -> sniff
      -> reject, or name + persist
      -> Asset / FetchedMedia for the router to render

One pipeline instance exists per category, each with its own store. The
differences between deployments (JSON link vs relayed bytes, memory vs
disk, cache or not) are constructor arguments, not separate code paths.
"""

import asyncio
import logging
from io import BytesIO
from typing import Any, Iterable, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from cache.memory_store import EphemeralCache
from image_proxy.fetcher import ProxyFetcher

from .asset_store import AssetStore, validate_asset_name
from .errors import InvalidContentError, PayloadTooLargeError
from .models import Asset, FetchedMedia, MediaCategory, MediaKind
from .sniffer import classify, mime_for_extension

logger = logging.getLogger(__name__)

MULTIPART_CHUNK_SIZE = 64 * 1024

REJECTION_MESSAGES = {
    MediaCategory.IMAGE: "The provided data wasn't an image.",
    MediaCategory.AUDIO: "The provided data wasn't an audio format.",
}

# Formats Pillow can decode for integrity checks
PIL_VERIFIABLE = {"png", "jpg", "gif", "webp", "bmp", "tif", "ico", "psd"}


async def extract_multipart(
    fields: Iterable[Tuple[str, Any]],
    mode: str = "concat",
    limit: Optional[int] = None,
) -> bytes:
    """
    Assemble the upload payload from parsed multipart fields.

    Args:
        fields: (name, value) pairs in form order; values are str or file
            objects with an async ``read(size)``
        mode: "concat" joins every field's bytes in order; "first_file"
            keeps only the first file field
        limit: Raise PayloadTooLargeError as soon as the assembled size
            passes this many bytes

    Files are read chunk by chunk until exhausted.
    """
    parts = []
    received = 0

    def keep(part: bytes) -> None:
        nonlocal received
        received += len(part)
        if limit is not None and received > limit:
            raise PayloadTooLargeError(f"Payload exceeds the {limit} byte limit.")
        parts.append(part)

    for _, value in fields:
        if isinstance(value, str):
            if mode == "concat":
                keep(value.encode("utf-8"))
            continue

        while True:
            chunk = await value.read(MULTIPART_CHUNK_SIZE)
            if not chunk:
                break
            keep(chunk)

        if mode == "first_file":
            break

    return b"".join(parts)


def verify_image(data: bytes, kind: MediaKind) -> None:
    """Decode-level integrity check on top of the signature match."""
    if kind.extension not in PIL_VERIFIABLE:
        return
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.info(f"[Ingest] Corrupt {kind.extension} rejected: {e}")
        raise InvalidContentError("The provided image is corrupt.") from e


class IngestPipeline:
    """
    Upload, proxy and fetch flows for one media category.

    Usage:
        pipeline = IngestPipeline(MediaCategory.IMAGE, store, "https://host")
        asset = await pipeline.ingest(data)
        link = pipeline.link_for(asset.name)
    """

    def __init__(
        self,
        category: MediaCategory,
        store: AssetStore,
        base_url: str,
        cache: Optional[EphemeralCache] = None,
        fetcher: Optional[ProxyFetcher] = None,
        verify_images: bool = False,
    ):
        self.category = category
        self.store = store
        self.base_url = base_url.rstrip("/")
        self.cache = cache
        self.fetcher = fetcher
        self.verify_images = verify_images

    def link_for(self, name: str) -> str:
        return f"{self.base_url}/v1/{self.category.value}/{name}"

    def kind_for(self, name: str, data: bytes) -> MediaKind:
        """Sniffed kind, else the stored extension, else the category default."""
        kind = classify(data)
        if kind is not None:
            return kind

        extension = name.rsplit(".", 1)[-1].lower()
        return MediaKind(
            category=self.category,
            extension=extension,
            mime_type=mime_for_extension(extension) or self.category.default_mime,
        )

    def validate(self, data: bytes) -> MediaKind:
        """
        Sniff an assembled buffer and check it belongs to this category.

        Raises:
            InvalidContentError: unrecognised, wrong category or corrupt
        """
        kind = classify(data)
        if kind is None or kind.category is not self.category:
            raise InvalidContentError(REJECTION_MESSAGES[self.category])
        if self.verify_images and self.category is MediaCategory.IMAGE:
            verify_image(data, kind)
        return kind

    # ============================================
    # Uploads
    # ============================================

    async def ingest(self, data: bytes) -> Asset:
        """Validate and persist an uploaded buffer."""
        kind = self.validate(data)
        name = await asyncio.to_thread(self.store.put, data, kind.extension)
        logger.info(f"[Ingest] Stored {self.category.value} {name} ({len(data)} bytes)")
        return Asset(name=name, data=data, kind=kind)

    # ============================================
    # Proxy
    # ============================================

    def _require_fetcher(self) -> ProxyFetcher:
        if self.fetcher is None:
            raise RuntimeError(f"{self.category.value} pipeline has no proxy fetcher")
        return self.fetcher

    async def ingest_remote(self, url: str) -> Asset:
        """Fetch remote media and persist it, for link-style embeds."""
        media = await self._require_fetcher().fetch(url, self.category)
        name = await asyncio.to_thread(self.store.put, media.data, media.kind.extension)
        logger.info(f"[Ingest] Stored embed {name} from {url[:60]}...")
        return Asset(name=name, data=media.data, kind=media.kind)

    async def relay_remote(self, url: str) -> FetchedMedia:
        """
        Fetch remote media without persisting it.

        Reads through the cache when one is configured. The URL is checked
        before the cache lookup so a self-referencing URL is refused even if
        it were somehow cached.
        """
        fetcher = self._require_fetcher()
        fetcher.check_url(url)

        if self.cache is None:
            return await fetcher.fetch(url, self.category)

        async def load() -> bytes:
            media = await fetcher.fetch(url, self.category)
            return media.data

        key = f"embed:{self.category.value}:{url}"
        hit = key in self.cache
        data = await self.cache.get_or_load(key, load)
        kind = classify(data)
        return FetchedMedia(url=url, data=data, kind=kind, from_cache=hit)

    # ============================================
    # Fetch by name
    # ============================================

    async def load(self, name: str) -> Asset:
        """
        Read a stored asset.

        Raises:
            InvalidAssetNameError: name fails validation
            NotFoundError: nothing stored under that name
            StorageError: any other read failure
        """
        validate_asset_name(name)

        if self.cache is None:
            data = await asyncio.to_thread(self.store.get, name)
        else:
            data = await self.cache.get_or_load(
                f"{self.category.value}:{name}",
                lambda: asyncio.to_thread(self.store.get, name),
            )

        return Asset(name=name, data=data, kind=self.kind_for(name, data))
