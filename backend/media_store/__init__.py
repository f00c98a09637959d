"""
Media Store Module

Content sniffing, safe naming and persistence of uploaded media.
"""

from .models import Asset, FetchedMedia, MediaCategory, MediaKind
from .sniffer import classify, is_audio, is_image
from .asset_store import AssetStore, DiskAssetStore, MemoryAssetStore, validate_asset_name

__all__ = [
    "Asset",
    "FetchedMedia",
    "MediaCategory",
    "MediaKind",
    "classify",
    "is_audio",
    "is_image",
    "AssetStore",
    "DiskAssetStore",
    "MemoryAssetStore",
    "validate_asset_name",
]
