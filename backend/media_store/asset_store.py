"""
Asset Store

Durable naming and persistence for accepted uploads.

- Names are a random UUID4 plus the sniffed extension, never user input
- Disk writes go through a temp file and an atomic rename, so an asset
  either exists completely or not at all
- Names coming back from a URL are validated before touching storage

Layout (disk backend):
root/
├── 0b6f1c3e-...-9a2d.png
└── ...
"""

import logging
import os
import re
import tempfile
import uuid
from pathlib import Path
from threading import Lock
from typing import Dict, Union

from .errors import ConfigError, InvalidAssetNameError, NotFoundError, StorageError

logger = logging.getLogger(__name__)

# Stem of letters, digits, "-" and "_", then exactly one extension
ASSET_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,127}\.[A-Za-z0-9]{1,8}$")


def validate_asset_name(name: str) -> str:
    """
    Reject anything that could escape the store root.

    Raises:
        InvalidAssetNameError: on separators, relative-path tokens, NUL,
            missing extension or an over-long name.
    """
    if not ASSET_NAME_PATTERN.match(name or ""):
        raise InvalidAssetNameError(name)
    return name


def generate_asset_name(extension: str) -> str:
    """Random 128-bit identifier plus extension. Collisions are not checked."""
    return f"{uuid.uuid4()}.{extension.lstrip('.')}"


class AssetStore:
    """Interface shared by the disk and memory backends."""

    def ensure_ready(self) -> None:
        """Idempotent startup step. Raises ConfigError if storage is unusable."""

    def put(self, data: bytes, extension: str) -> str:
        raise NotImplementedError

    def get(self, name: str) -> bytes:
        raise NotImplementedError

    def exists(self, name: str) -> bool:
        raise NotImplementedError


class DiskAssetStore(AssetStore):
    """Stores each asset as a file directly under ``root``."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def ensure_ready(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(
                f"Failed to create storage directory {self.root}: {e}"
            ) from e
        logger.info(f"[AssetStore] Storage directory: {self.root}")

    def _path_for(self, name: str) -> Path:
        return self.root / validate_asset_name(name)

    def put(self, data: bytes, extension: str) -> str:
        name = generate_asset_name(extension)
        target = self._path_for(name)
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "wb", delete=False, dir=str(self.root), prefix=".upload-"
            ) as tmp:
                tmp_path = tmp.name
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, target)
        except OSError as e:
            logger.error(f"[AssetStore] Failed to write {name}: {e}")
            if tmp_path is not None and os.path.exists(tmp_path):
                try:
                    os.unlink(tmp_path)
                except OSError as cleanup_error:
                    logger.warning(f"[AssetStore] Failed to remove temp file {tmp_path}: {cleanup_error}")
            raise StorageError() from e

        logger.debug(f"[AssetStore] Stored {name} ({len(data)} bytes)")
        return name

    def get(self, name: str) -> bytes:
        path = self._path_for(name)
        try:
            with open(path, "rb") as f:
                return f.read()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise NotFoundError(f"No file named {name}.")
        except OSError as e:
            logger.error(f"[AssetStore] Failed to read {name}: {e}")
            raise StorageError() from e

    def exists(self, name: str) -> bool:
        return self._path_for(name).is_file()


class MemoryAssetStore(AssetStore):
    """In-process store for single-node deployments without a disk."""

    def __init__(self):
        self._assets: Dict[str, bytes] = {}
        self._lock = Lock()

    def put(self, data: bytes, extension: str) -> str:
        name = generate_asset_name(extension)
        validate_asset_name(name)
        with self._lock:
            self._assets[name] = bytes(data)
        return name

    def get(self, name: str) -> bytes:
        validate_asset_name(name)
        with self._lock:
            data = self._assets.get(name)
        if data is None:
            raise NotFoundError(f"No file named {name}.")
        return data

    def exists(self, name: str) -> bool:
        validate_asset_name(name)
        with self._lock:
            return name in self._assets

    def __len__(self) -> int:
        with self._lock:
            return len(self._assets)
