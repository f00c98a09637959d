"""
Configuration and startup tests

Run:
    pytest tests/test_config.py -v
"""

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from app_config import CONFIG_PATH_ENV, load_config, parse_config
from main import create_app
from media_store.errors import ConfigError
from media_store.models import MediaCategory
from conftest import make_config

MINIMAL = """
ip = "0.0.0.0"
protocol = "https"
domain = "media.example.com"
port = 8080
max_image_size = 1000
max_audio_size = 2000
"""


class TestParseConfig:

    def test_minimal_config_gets_defaults(self):
        config = parse_config(MINIMAL)

        assert config.base_url == "https://media.example.com"
        assert config.max_size_for(MediaCategory.IMAGE) == 1000
        assert config.max_size_for(MediaCategory.AUDIO) == 2000
        assert config.storage.backend == "disk"
        assert config.storage_dir_for(MediaCategory.IMAGE) == Path("./images")
        assert config.storage_dir_for(MediaCategory.AUDIO) == Path("./audio")
        assert config.cache.ttl_seconds == 12 * 3600
        assert config.proxy.embed_mode == "relay"
        assert config.uploads.multipart_mode == "concat"

    def test_sections_override_defaults(self):
        config = parse_config(MINIMAL + """
[cache]
enabled = false
ttl_hours = 1

[proxy]
embed_mode = "persist"
timeout_seconds = 5
""")
        assert config.cache.enabled is False
        assert config.cache.ttl_seconds == 3600
        assert config.proxy.embed_mode == "persist"
        assert config.proxy.timeout_seconds == 5

    @pytest.mark.parametrize("text", [
        "this is = not [valid toml",
        MINIMAL.replace('domain = "media.example.com"\n', ""),
        MINIMAL.replace('"https"', '"gopher"'),
        MINIMAL.replace("port = 8080", "port = 0"),
        MINIMAL.replace("max_image_size = 1000", "max_image_size = -1"),
        MINIMAL + '\n[storage]\nbackend = "s3"\n',
        MINIMAL + '\n[cache]\nunknown_key = 1\n',
    ])
    def test_invalid_config_is_config_error(self, text):
        with pytest.raises(ConfigError):
            parse_config(text)

    def test_config_is_frozen(self):
        config = parse_config(MINIMAL)
        with pytest.raises(PydanticValidationError):
            config.domain = "other.example.com"


class TestLoadConfig:

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "config.toml")

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(MINIMAL, encoding="utf-8")
        assert load_config(path).domain == "media.example.com"

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.toml"
        path.write_text(MINIMAL, encoding="utf-8")
        monkeypatch.setenv(CONFIG_PATH_ENV, str(path))
        assert load_config().port == 8080

    def test_example_config_is_valid(self):
        example = Path(__file__).parent.parent.parent / "config.example.toml"
        config = load_config(example)
        assert config.storage.backend == "disk"


class TestStartup:

    def test_create_app_bootstraps_storage(self, tmp_path):
        config = make_config(tmp_path)
        create_app(config)
        assert config.storage.image_dir.is_dir()
        assert config.storage.audio_dir.is_dir()

    def test_create_app_twice_is_fine(self, tmp_path):
        config = make_config(tmp_path)
        create_app(config)
        create_app(config)

    def test_uncreatable_storage_is_fatal(self, tmp_path):
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        config = make_config(tmp_path, storage={"image_dir": str(blocker / "images")})
        with pytest.raises(ConfigError):
            create_app(config)


class TestPackaging:

    def test_report_plugin_is_a_declared_test_dependency(self):
        import tomllib

        root = Path(__file__).parent.parent.parent
        runner = (Path(__file__).parent / "run_tests.py").read_text()
        with open(root / "pyproject.toml", "rb") as f:
            extras = tomllib.load(f)["project"]["optional-dependencies"]["test"]

        assert "--html=" in runner
        assert any(dep.startswith("pytest-html") for dep in extras)
