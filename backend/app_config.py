"""
Media Host Configuration

Loaded once at startup from a TOML file and frozen afterwards, so every
request handler can share it without locking.

    ip = "0.0.0.0"
    port = 8080
    domain = "media.example.com"
    protocol = "https"
    max_image_size = 10485760
    max_audio_size = 52428800

    [storage]      backend, image_dir, audio_dir
    [cache]        enabled, ttl_hours, max_size_mb, cleanup_interval_seconds
    [proxy]        timeout_seconds, embed_mode, user_agent
    [uploads]      multipart_mode, verify_images
    [logging]      level
"""

import os
import tomllib
from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from media_store.errors import ConfigError
from media_store.models import MediaCategory

CONFIG_PATH_ENV = "MEDIA_HOST_CONFIG"
DEFAULT_CONFIG_PATH = "./config.toml"


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class StorageSettings(_Section):
    backend: Literal["disk", "memory"] = "disk"
    image_dir: Path = Path("./images")
    audio_dir: Path = Path("./audio")


class CacheSettings(_Section):
    enabled: bool = True
    ttl_hours: float = Field(default=12, gt=0)
    max_size_mb: int = Field(default=256, ge=1)
    cleanup_interval_seconds: float = Field(default=600, gt=0)

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_hours * 3600

    @property
    def max_bytes(self) -> int:
        return self.max_size_mb * 1024 * 1024


class ProxySettings(_Section):
    timeout_seconds: float = Field(default=30.0, gt=0)
    embed_mode: Literal["relay", "persist"] = "relay"
    user_agent: str = "media-host/1.0 (+proxy)"


class UploadSettings(_Section):
    multipart_mode: Literal["concat", "first_file"] = "concat"
    verify_images: bool = False


class LoggingSettings(_Section):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


class MediaHostConfig(_Section):
    """Top-level service configuration."""

    ip: str
    port: int = Field(ge=1, le=65535)
    domain: str = Field(min_length=1)
    protocol: Literal["http", "https"]
    max_image_size: int = Field(gt=0)
    max_audio_size: int = Field(gt=0)

    storage: StorageSettings = StorageSettings()
    cache: CacheSettings = CacheSettings()
    proxy: ProxySettings = ProxySettings()
    uploads: UploadSettings = UploadSettings()
    logging: LoggingSettings = LoggingSettings()

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.domain}"

    def max_size_for(self, category: MediaCategory) -> int:
        if category is MediaCategory.IMAGE:
            return self.max_image_size
        return self.max_audio_size

    def storage_dir_for(self, category: MediaCategory) -> Path:
        if category is MediaCategory.IMAGE:
            return self.storage.image_dir
        return self.storage.audio_dir


def parse_config(text: str) -> MediaHostConfig:
    """Parse and validate TOML text."""
    try:
        raw = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"config is not valid TOML: {e}") from e

    try:
        return MediaHostConfig.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigError(f"config is invalid: {e}") from e


def load_config(path: Optional[Union[str, Path]] = None) -> MediaHostConfig:
    """
    Load the config file.

    Args:
        path: Explicit path. Defaults to $MEDIA_HOST_CONFIG, then ./config.toml

    Raises:
        ConfigError: file missing, unreadable, malformed or incomplete
    """
    config_path = Path(path or os.getenv(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read {config_path}: {e}") from e
    return parse_config(text)
