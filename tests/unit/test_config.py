"""Tests for promptshare.core.config - configuration management.

Tests cover:
- Default values for all configuration fields.
- Environment variable overrides via the PROMPTSHARE_ prefix.
- Path resolution for the JSON fallback file.
- Pydantic validation constraints (port range, timeouts, log level).
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from promptshare.core.config import GalleryConfig


@pytest.fixture
def clean_env(monkeypatch):
    """Remove any PROMPTSHARE_ variables inherited from the environment."""
    for key in list(os.environ):
        if key.startswith("PROMPTSHARE_"):
            monkeypatch.delenv(key)


@pytest.mark.unit
class TestConfigDefaults:
    """Verify that GalleryConfig provides sensible defaults."""

    def test_primary_disabled_by_default(self, clean_env):
        """No database URL means the primary tier is off."""
        cfg = GalleryConfig(_env_file=None)
        assert cfg.database_url == ""

    def test_default_cache_window(self, clean_env):
        """Snapshots stay fresh for 30 seconds."""
        assert GalleryConfig(_env_file=None).cache_max_age_seconds == 30.0

    def test_default_store_timeout(self, clean_env):
        assert GalleryConfig(_env_file=None).store_timeout_seconds == 5.0

    def test_default_file_cap(self, clean_env):
        """The JSON fallback keeps at most 100 entries."""
        assert GalleryConfig(_env_file=None).file_store_max_entries == 100

    def test_empty_tier_is_final_by_default(self, clean_env):
        assert GalleryConfig(_env_file=None).fall_through_on_empty is False

    def test_default_server(self, clean_env):
        cfg = GalleryConfig(_env_file=None)
        assert cfg.server_host == "0.0.0.0"
        assert cfg.server_port == 8000
        assert cfg.log_level == "INFO"


@pytest.mark.unit
class TestPaths:
    """Test derived paths."""

    def test_shared_images_path(self, clean_env, temp_dir: Path):
        cfg = GalleryConfig(data_dir=temp_dir, _env_file=None)
        assert cfg.shared_images_path == temp_dir / "shared-images.json"

    def test_custom_file_name(self, clean_env, temp_dir: Path):
        cfg = GalleryConfig(data_dir=temp_dir, shared_images_file="gallery.json", _env_file=None)
        assert cfg.shared_images_path == temp_dir / "gallery.json"

    def test_no_directories_created(self, clean_env, temp_dir: Path):
        """Building a config should not touch the filesystem."""
        GalleryConfig(data_dir=temp_dir / "data", _env_file=None)
        assert not (temp_dir / "data").exists()


@pytest.mark.unit
class TestEnvironmentOverrides:
    """Test PROMPTSHARE_ environment variables."""

    def test_env_overrides_cache_window(self, clean_env, monkeypatch):
        monkeypatch.setenv("PROMPTSHARE_CACHE_MAX_AGE_SECONDS", "10")
        assert GalleryConfig(_env_file=None).cache_max_age_seconds == 10.0

    def test_env_is_case_insensitive(self, clean_env, monkeypatch):
        monkeypatch.setenv("promptshare_database_url", "sqlite+aiosqlite:///x.db")
        assert GalleryConfig(_env_file=None).database_url == "sqlite+aiosqlite:///x.db"

    def test_env_boolean(self, clean_env, monkeypatch):
        monkeypatch.setenv("PROMPTSHARE_FALL_THROUGH_ON_EMPTY", "true")
        assert GalleryConfig(_env_file=None).fall_through_on_empty is True


@pytest.mark.unit
class TestValidation:
    """Test Pydantic validation constraints."""

    def test_cache_window_must_be_positive(self, clean_env):
        with pytest.raises(ValidationError):
            GalleryConfig(cache_max_age_seconds=0, _env_file=None)

    def test_timeout_upper_bound(self, clean_env):
        with pytest.raises(ValidationError):
            GalleryConfig(store_timeout_seconds=120, _env_file=None)

    def test_file_cap_must_be_positive(self, clean_env):
        with pytest.raises(ValidationError):
            GalleryConfig(file_store_max_entries=0, _env_file=None)

    def test_privileged_port_rejected(self, clean_env):
        with pytest.raises(ValidationError):
            GalleryConfig(server_port=80, _env_file=None)

    def test_unknown_log_level_rejected(self, clean_env):
        with pytest.raises(ValidationError):
            GalleryConfig(log_level="VERBOSE", _env_file=None)
