"""
Asset store tests

Run:
    pytest tests/test_asset_store.py -v
"""

import re
from concurrent.futures import ThreadPoolExecutor

import pytest

from media_store.asset_store import (
    DiskAssetStore,
    MemoryAssetStore,
    generate_asset_name,
    validate_asset_name,
)
from media_store.errors import (
    ConfigError,
    InvalidAssetNameError,
    NotFoundError,
    StorageError,
)
from conftest import stored_files

UUID_NAME = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[0-9a-f]{4}-[0-9a-f]{12}\.png$")

TRAVERSAL_NAMES = [
    "../etc/passwd",
    "..",
    "../../secret.png",
    "a/b.png",
    "a\\b.png",
    ".hidden.png",
    "name.with.dots.png",
    "noextension",
    "nul\x00.png",
    "x" * 200 + ".png",
    "",
]


@pytest.fixture
def disk_store(tmp_path):
    store = DiskAssetStore(tmp_path / "images")
    store.ensure_ready()
    return store


# ============================================
# Names
# ============================================

class TestNames:

    def test_generated_name_format(self):
        assert UUID_NAME.match(generate_asset_name("png"))
        assert generate_asset_name(".png").endswith(".png")
        assert not generate_asset_name("png").endswith("..png")

    def test_generated_names_are_unique(self):
        names = {generate_asset_name("png") for _ in range(1000)}
        assert len(names) == 1000

    @pytest.mark.parametrize("name", TRAVERSAL_NAMES)
    def test_validate_rejects_unsafe_names(self, name):
        with pytest.raises(InvalidAssetNameError):
            validate_asset_name(name)

    def test_validate_accepts_generated_names(self):
        name = generate_asset_name("jpg")
        assert validate_asset_name(name) == name


# ============================================
# Disk backend
# ============================================

class TestDiskAssetStore:

    def test_put_then_get_round_trip(self, disk_store, png_bytes):
        name = disk_store.put(png_bytes, "png")

        assert UUID_NAME.match(name)
        assert disk_store.get(name) == png_bytes
        assert (disk_store.root / name).read_bytes() == png_bytes

    def test_put_leaves_no_temp_files(self, disk_store, png_bytes):
        name = disk_store.put(png_bytes, "png")
        assert [p.name for p in disk_store.root.iterdir()] == [name]

    def test_get_unknown_name_is_not_found(self, disk_store):
        with pytest.raises(NotFoundError):
            disk_store.get(generate_asset_name("png"))

    @pytest.mark.parametrize("name", TRAVERSAL_NAMES)
    def test_get_rejects_traversal(self, disk_store, name):
        with pytest.raises(InvalidAssetNameError):
            disk_store.get(name)

    def test_traversal_never_reads_outside_root(self, tmp_path, disk_store):
        (tmp_path / "secret.png").write_bytes(b"secret")
        with pytest.raises(InvalidAssetNameError):
            disk_store.get("../secret.png")

    def test_ensure_ready_is_idempotent(self, tmp_path):
        store = DiskAssetStore(tmp_path / "nested" / "images")
        store.ensure_ready()
        store.ensure_ready()
        assert store.root.is_dir()

    def test_ensure_ready_fails_when_root_is_a_file(self, tmp_path):
        blocker = tmp_path / "images"
        blocker.write_bytes(b"")
        with pytest.raises(ConfigError):
            DiskAssetStore(blocker).ensure_ready()

    def test_write_failure_is_storage_error(self, tmp_path, png_bytes):
        store = DiskAssetStore(tmp_path / "missing")
        with pytest.raises(StorageError) as excinfo:
            store.put(png_bytes, "png")
        # No filesystem details reach the message
        assert str(tmp_path) not in excinfo.value.message

    def test_exists(self, disk_store, png_bytes):
        name = disk_store.put(png_bytes, "png")
        assert disk_store.exists(name)
        assert not disk_store.exists(generate_asset_name("png"))

    def test_concurrent_puts_never_collide(self, disk_store):
        payloads = [f"payload-{i}".encode() * 50 for i in range(32)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            names = list(pool.map(lambda data: disk_store.put(data, "bin"), payloads))

        assert len(set(names)) == len(payloads)
        for name, data in zip(names, payloads):
            assert disk_store.get(name) == data
        assert len(stored_files(disk_store.root)) == len(payloads)


# ============================================
# Memory backend
# ============================================

class TestMemoryAssetStore:

    def test_put_then_get_round_trip(self, ogg_bytes):
        store = MemoryAssetStore()
        name = store.put(ogg_bytes, "ogg")
        assert name.endswith(".ogg")
        assert store.get(name) == ogg_bytes
        assert len(store) == 1

    def test_get_unknown_name_is_not_found(self):
        with pytest.raises(NotFoundError):
            MemoryAssetStore().get(generate_asset_name("ogg"))

    def test_get_rejects_traversal(self):
        with pytest.raises(InvalidAssetNameError):
            MemoryAssetStore().get("../x.ogg")
