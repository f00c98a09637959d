"""
Memory Cache Module

Bounded read-through cache for stored assets and relayed embeds.
"""

from .memory_store import EphemeralCache, CacheEntry
from .routes import create_cache_router

__all__ = [
    "EphemeralCache",
    "CacheEntry",
    "create_cache_router",
]
