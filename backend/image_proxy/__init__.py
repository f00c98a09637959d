"""
Embed Proxy Module

Fetches external images and audio on the server so callers never contact
the remote host themselves.

Features:
- Self-reference and scheme checks before any network call
- Bounded timeout and body size
- Content sniffing of the relayed bytes
- Optional read-through memory caching
"""

from .fetcher import ProxyFetcher

# The embed router depends on media_store.ingest, which imports the fetcher,
# so it is imported from image_proxy.routes_fastapi directly.

__all__ = ["ProxyFetcher"]
