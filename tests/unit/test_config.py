"""Tests for runtime config: env-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from codexforge.config import ForgeConfig
from codexforge.models.build import AnchorKind
from codexforge.models.entry import StorageProtocol
from codexforge.storage.drive import DRIVE_API_BASE


class TestForgeConfig:
    def test_defaults(self):
        config = ForgeConfig(_env_file=None)
        assert config.log_level == "INFO"
        assert config.anchor is AnchorKind.MOCK
        assert config.storage_protocol is StorageProtocol.LOCAL
        assert config.storage_backend == "none"
        assert config.self_reference is False
        assert config.signing_key_path is None
        assert config.drive_api_base == DRIVE_API_BASE

    def test_only_read_settings_are_declared(self):
        assert "environment" not in ForgeConfig.model_fields
        assert not hasattr(ForgeConfig, "is_production")

    def test_default_paths(self):
        config = ForgeConfig(_env_file=None)
        assert config.token_path == Path(".codexforge/token.json")
        assert config.local_storage_path == Path(".codexforge/objects")

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CODEXFORGE_ANCHOR", "google")
        monkeypatch.setenv("CODEXFORGE_STORAGE_BACKEND", "gdrive")
        monkeypatch.setenv("CODEXFORGE_SELF_REFERENCE", "true")
        config = ForgeConfig(_env_file=None)
        assert config.anchor is AnchorKind.GOOGLE
        assert config.storage_backend == "gdrive"
        assert config.self_reference is True

    def test_invalid_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("CODEXFORGE_STORAGE_BACKEND", "floppy")
        with pytest.raises(ValueError):
            ForgeConfig(_env_file=None)
