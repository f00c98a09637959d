"""
Media Host test configuration

Fixtures shared by the test modules:
- Real media payloads (Pillow-generated PNG/JPEG, minimal audio headers)
- A config rooted in pytest's tmp_path
- FakeRemote: an httpx.MockTransport standing in for the internet
- A FastAPI TestClient around the full app
"""

import io
import sys
from pathlib import Path
from typing import Dict, Optional

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from PIL import Image

# Add backend directory to the Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from app_config import MediaHostConfig
from main import build_fetcher, create_app

DOMAIN = "media.test"


# ============================================
# Payloads
# ============================================

def make_png(size=(16, 16), color=(255, 0, 0, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_jpeg(size=(16, 16)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, (0, 128, 255)).save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """A valid 16x16 PNG."""
    return make_png()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_jpeg()


@pytest.fixture
def ogg_bytes() -> bytes:
    """Ogg page header followed by padding; enough for the sniffer."""
    return b"OggS\x00\x02" + b"\x00" * 58


# ============================================
# Config
# ============================================

def make_config(tmp_path: Path, **overrides) -> MediaHostConfig:
    """
    Build a config rooted in tmp_path.

    Dict overrides are merged into the matching section:
        make_config(tmp_path, proxy={"embed_mode": "persist"})
    """
    raw = {
        "ip": "127.0.0.1",
        "port": 8080,
        "domain": DOMAIN,
        "protocol": "http",
        "max_image_size": 1024 * 1024,
        "max_audio_size": 1024 * 1024,
        "storage": {
            "image_dir": str(tmp_path / "images"),
            "audio_dir": str(tmp_path / "audio"),
        },
    }
    for key, value in overrides.items():
        if isinstance(value, dict):
            raw.setdefault(key, {}).update(value)
        else:
            raw[key] = value
    return MediaHostConfig.model_validate(raw)


@pytest.fixture
def config(tmp_path) -> MediaHostConfig:
    return make_config(tmp_path)


# ============================================
# Fake remote hosts
# ============================================

class FakeRemote:
    """
    Routes outbound requests to canned responses.

    Unknown URLs behave like an unreachable host.
    """

    def __init__(self):
        self.routes: Dict[str, tuple] = {}
        self.errors: Dict[str, type] = {}
        self.requests = []
        self.transport = httpx.MockTransport(self.handler)

    def add(self, url: str, content: bytes, status: int = 200, content_type: Optional[str] = None):
        headers = {"content-type": content_type} if content_type else {}
        self.routes[url] = (status, content, headers)

    def redirect(self, url: str, location: str, status: int = 302):
        self.routes[url] = (status, b"", {"location": location})

    def fail(self, url: str, error: type):
        self.errors[url] = error

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url in self.errors:
            raise self.errors[url]("simulated failure", request=request)
        if url not in self.routes:
            raise httpx.ConnectError("Name or service not known", request=request)
        status, content, headers = self.routes[url]
        return httpx.Response(status, content=content, headers=headers)


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest_asyncio.fixture
async def fetcher(config, remote):
    """ProxyFetcher wired to the fake remote."""
    proxy_fetcher = build_fetcher(config, transport=remote.transport)
    yield proxy_fetcher
    await proxy_fetcher.close()


# ============================================
# App
# ============================================

def app_client(config: MediaHostConfig, remote: FakeRemote) -> TestClient:
    """TestClient for a fresh app; use as a context manager to run lifespan."""
    app = create_app(config, fetcher=build_fetcher(config, transport=remote.transport))
    return TestClient(app)


@pytest.fixture
def client(config, remote):
    with app_client(config, remote) as test_client:
        yield test_client


# ============================================
# Helper Functions
# ============================================

def stored_files(directory: Path):
    """Visible files in a storage directory."""
    if not directory.exists():
        return []
    return sorted(p.name for p in directory.iterdir() if not p.name.startswith("."))


def assert_rejected(response, status_code: int, text_contains: Optional[str] = None):
    """
    Assert a plain-text error response.

    Usage:
        assert_rejected(client.post("/v1/image", content=b"x"), 400, "image")
    """
    assert response.status_code == status_code, \
        f"Expected {status_code}, got {response.status_code}: {response.text}"
    if text_contains:
        assert text_contains.lower() in response.text.lower(), \
            f"Response should contain '{text_contains}', got: {response.text}"
