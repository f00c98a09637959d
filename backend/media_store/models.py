"""
Media Store Models

Plain data carried between the sniffer, the stores and the pipeline.
"""

from dataclasses import dataclass
from enum import Enum


class MediaCategory(str, Enum):
    """Media categories the service accepts."""
    IMAGE = "image"
    AUDIO = "audio"

    @property
    def default_mime(self) -> str:
        """Content type used when stored bytes can't be classified."""
        return "image/png" if self is MediaCategory.IMAGE else "audio/ogg"


@dataclass(frozen=True)
class MediaKind:
    """Result of sniffing a buffer."""
    category: MediaCategory
    extension: str
    mime_type: str


@dataclass(frozen=True)
class Asset:
    """A stored unit: generated name, immutable bytes, sniffed kind."""
    name: str
    data: bytes
    kind: MediaKind

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class FetchedMedia:
    """Validated bytes relayed from a remote host."""
    url: str
    data: bytes
    kind: MediaKind
    from_cache: bool = False
