"""Unit tests for Config and MediaConfig (blueprint_writer.config).

Tests cover:
- MediaConfig defaults and validation
- Config defaults, allowed-root resolution, save/load, from_env
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from blueprint_writer.bundle import OverwriteMode
from blueprint_writer.config import Config, MediaConfig
from blueprint_writer.migrations import Dialect


_ENV_VARS = (
    "BLUEPRINT_ALLOWED_ROOTS",
    "BLUEPRINT_DIALECT",
    "BLUEPRINT_DEBUG",
    "BLUEPRINT_OVERWRITE_MODE",
    "BLUEPRINT_PROJECT_NAME",
    "BLUEPRINT_MEDIA_URL",
    "BLUEPRINT_MEDIA_TIMEOUT",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestMediaConfig:
    @pytest.mark.unit
    def test_defaults(self):
        media = MediaConfig()
        assert media.base_url == "https://sitepaige.com"
        assert media.timeout == 30.0

    @pytest.mark.unit
    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            MediaConfig(timeout=0)


class TestConfigDefaults:
    @pytest.mark.unit
    def test_defaults(self):
        config = Config()
        assert config.dialect is Dialect.SQLITE
        assert config.overwrite_mode is OverwriteMode.FAIL
        assert config.debug is False
        assert config.allowed_roots == [Path.cwd().resolve()]

    @pytest.mark.unit
    def test_roots_are_resolved(self, tmp_path: Path):
        config = Config(allowed_roots=[tmp_path / "a" / ".." / "b"])
        assert config.allowed_roots == [(tmp_path / "b").resolve()]

    @pytest.mark.unit
    def test_empty_roots_rejected(self):
        with pytest.raises(ValidationError):
            Config(allowed_roots=[])

    @pytest.mark.unit
    def test_unknown_dialect_rejected(self):
        with pytest.raises(ValidationError):
            Config(dialect="oracle")


class TestConfigPersistence:
    @pytest.mark.unit
    def test_save_and_load(self, tmp_path: Path):
        original = Config(
            project_name="shop",
            allowed_roots=[tmp_path],
            dialect=Dialect.POSTGRES,
            overwrite_mode=OverwriteMode.BACKUP,
            media=MediaConfig(base_url="http://media.local", timeout=5),
        )
        path = original.save(tmp_path / "cfg" / "config.json")
        assert path.exists()
        assert json.loads(path.read_text(encoding="utf-8"))["dialect"] == "postgres"

        loaded = Config.load(path)
        assert loaded == original


class TestConfigFromEnv:
    @pytest.mark.unit
    def test_no_env_gives_defaults(self, clean_env: pytest.MonkeyPatch):
        config = Config.from_env()
        assert config.dialect is Dialect.SQLITE
        assert config.project_name == ""
        assert config.media.base_url == "https://sitepaige.com"

    @pytest.mark.unit
    def test_reads_every_variable(self, clean_env: pytest.MonkeyPatch, tmp_path: Path):
        clean_env.setenv("BLUEPRINT_ALLOWED_ROOTS", f"{tmp_path / 'a'},{tmp_path / 'b'}")
        clean_env.setenv("BLUEPRINT_DIALECT", " MySQL ")
        clean_env.setenv("BLUEPRINT_DEBUG", "yes")
        clean_env.setenv("BLUEPRINT_OVERWRITE_MODE", "skip")
        clean_env.setenv("BLUEPRINT_PROJECT_NAME", "shop")
        clean_env.setenv("BLUEPRINT_MEDIA_URL", "http://media.local")
        clean_env.setenv("BLUEPRINT_MEDIA_TIMEOUT", "2.5")

        config = Config.from_env()

        assert config.allowed_roots == [(tmp_path / "a").resolve(), (tmp_path / "b").resolve()]
        assert config.dialect is Dialect.MYSQL
        assert config.debug is True
        assert config.overwrite_mode is OverwriteMode.SKIP
        assert config.project_name == "shop"
        assert config.media.base_url == "http://media.local"
        assert config.media.timeout == 2.5

    @pytest.mark.unit
    def test_invalid_dialect_raises(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("BLUEPRINT_DIALECT", "oracle")
        with pytest.raises(ValueError):
            Config.from_env()
