"""
Proxy Fetcher

Fetches remote media on behalf of a caller so the caller's address is
never exposed to the remote host. The service always downloads and
relays; it never redirects the client.

Handles:
- Rejecting URLs that point back at this service
- Bounded-time outbound GET, redirects followed hop by hop
- Streaming the body with a byte limit
- Sniffing the result against the requested category
"""

import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from media_store.errors import (
    InvalidProxyUrlError,
    NotMediaError,
    SelfReferenceError,
    UnreachableError,
    UpstreamStatusError,
    UpstreamTooLargeError,
)
from media_store.models import FetchedMedia, MediaCategory
from media_store.sniffer import classify

logger = logging.getLogger(__name__)

NOT_MEDIA_MESSAGES = {
    MediaCategory.IMAGE: "The target website didn't return an image.",
    MediaCategory.AUDIO: "The target website didn't return an audio format.",
}

MAX_REDIRECTS = 5

ACCEPT_HEADERS = {
    MediaCategory.IMAGE: "image/*,*/*;q=0.8",
    MediaCategory.AUDIO: "audio/*,*/*;q=0.8",
}


class ProxyFetcher:
    """
    Downloads and validates remote media.

    Usage:
        fetcher = ProxyFetcher(domain="media.example.com", max_bytes=limits)
        media = await fetcher.fetch(url, MediaCategory.IMAGE)
        await fetcher.close()
    """

    def __init__(
        self,
        domain: str,
        max_bytes: dict,
        timeout: float = 30.0,
        user_agent: str = "media-host/1.0 (+proxy)",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            domain: This service's own domain; URLs containing it are refused
            max_bytes: Per-category body limit, {MediaCategory: int}
            timeout: Outbound request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.domain = domain.lower()
        self.max_bytes = max_bytes
        self.http_client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=False,
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    async def close(self):
        """Close HTTP client."""
        await self.http_client.aclose()

    def check_url(self, url: str) -> None:
        """
        Validate a proxy target without touching the network.

        Raises:
            InvalidProxyUrlError: not an absolute http(s) URL
            SelfReferenceError: the URL references this service
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidProxyUrlError("Invalid URL: expected an absolute http(s) URL.")

        if self.domain in url.lower() or (parsed.hostname or "") == self.domain:
            raise SelfReferenceError()

    async def _download(self, url: str, category: MediaCategory, limit: int) -> list:
        """
        GET ``url``, following redirects by hand so every hop is checked.

        Returns:
            Body chunks of the final response
        """
        target = url
        for _ in range(MAX_REDIRECTS + 1):
            async with self.http_client.stream(
                "GET", target, headers={"Accept": ACCEPT_HEADERS[category]}
            ) as response:
                if response.is_redirect:
                    location = response.headers.get("location", "")
                    target = str(response.url.join(location))
                    logger.info(f"[Embed] Redirect {response.status_code} -> {target[:80]}")
                    self.check_url(target)
                    continue

                if not response.is_success:
                    logger.warning(f"[Embed] HTTP error {response.status_code}: {target[:60]}...")
                    raise UpstreamStatusError(response.status_code)

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > limit:
                    raise UpstreamTooLargeError(limit)

                chunks = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > limit:
                        logger.warning(f"[Embed] Body over {limit} bytes: {target[:60]}...")
                        raise UpstreamTooLargeError(limit)
                    chunks.append(chunk)
                return chunks

        logger.warning(f"[Embed] More than {MAX_REDIRECTS} redirects: {url[:60]}...")
        raise UnreachableError("The specified website redirected too many times.")

    async def fetch(self, url: str, category: MediaCategory) -> FetchedMedia:
        """
        Fetch ``url`` and return its bytes if they are ``category`` media.

        Raises:
            ProxyError subtypes, see media_store.errors
        """
        self.check_url(url)
        limit = self.max_bytes[category]

        try:
            logger.info(f"[Embed] Fetching: {url[:80]}...")
            chunks = await self._download(url, category, limit)
        except httpx.TimeoutException:
            logger.error(f"[Embed] Timeout: {url[:60]}...")
            raise UnreachableError()
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.error(f"[Embed] Failed to use url {url[:60]}: {e}")
            raise UnreachableError()

        data = b"".join(chunks)
        kind = classify(data)
        if kind is None or kind.category is not category:
            logger.warning(f"[Embed] Non-{category.value} content: {url[:60]}...")
            raise NotMediaError(NOT_MEDIA_MESSAGES[category])

        logger.info(f"[Embed] Fetched: {url[:60]}... ({len(data)} bytes, {kind.mime_type})")
        return FetchedMedia(url=url, data=data, kind=kind)
