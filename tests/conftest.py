"""Shared pytest fixtures for promptshare tests."""

import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from promptshare.api.main import create_app
from promptshare.core.config import GalleryConfig
from promptshare.core.models import Artifact, ArtifactDraft
from promptshare.stores.file_store import FileStore
from promptshare.stores.mirror import GenerationMirror

UNREACHABLE_DATABASE_URL = "postgresql+asyncpg://u:p@127.0.0.1:1/db"


class FakeClock:
    """Manually advanced clock for cache freshness tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def primary_url(temp_dir: Path) -> str:
    """SQLite stand-in for the managed primary database."""
    return f"sqlite+aiosqlite:///{temp_dir / 'primary.db'}"


@pytest.fixture
def test_config(temp_dir: Path, primary_url: str) -> GalleryConfig:
    """Create a test configuration backed by files in a temporary directory.

    The primary store is a file-backed SQLite database whose tables are
    created on startup.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        GalleryConfig instance for testing
    """
    return GalleryConfig(
        database_url=primary_url,
        create_schema=True,
        mirror_db_path=temp_dir / "generations.db",
        data_dir=temp_dir / "data",
        _env_file=None,
    )


@pytest.fixture
def offline_config(temp_dir: Path) -> GalleryConfig:
    """Configuration with no primary database: every access falls through."""
    return GalleryConfig(
        database_url="",
        mirror_db_path=temp_dir / "generations.db",
        data_dir=temp_dir / "data",
        _env_file=None,
    )


@pytest.fixture
def unreachable_config(temp_dir: Path) -> GalleryConfig:
    """Configuration whose Postgres server refuses connections.

    Port 1 on the loopback interface has no listener, so every primary call
    fails at connect time with an OS-level error.
    """
    return GalleryConfig(
        database_url=UNREACHABLE_DATABASE_URL,
        create_schema=True,
        store_timeout_seconds=2.0,
        mirror_db_path=temp_dir / "generations.db",
        data_dir=temp_dir / "data",
        _env_file=None,
    )


@pytest.fixture
def file_store(temp_dir: Path) -> FileStore:
    return FileStore(temp_dir / "data" / "shared-images.json")


@pytest.fixture
def mirror(temp_dir: Path) -> GenerationMirror:
    return GenerationMirror(temp_dir / "generations.db")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_draft() -> ArtifactDraft:
    """A share request for a clearly sci-fi prompt."""
    return ArtifactDraft(
        user_id="user-1",
        user_name="Ada",
        image_url="https://cdn.example.com/images/station.png",
        prompt="cyberpunk space station with neon lights",
        rendering_style="realistic_image",
    )


@pytest.fixture
def make_artifact():
    """Factory for artifacts with sensible defaults."""

    def _make(**overrides) -> Artifact:
        values = {
            "user_id": "user-1",
            "user_name": "Ada",
            "image_url": "https://cdn.example.com/images/a.png",
            "prompt": "a quiet mountain lake",
        }
        values.update(overrides)
        return Artifact(**values)

    return _make


@pytest.fixture
def test_client(test_config: GalleryConfig) -> Generator[TestClient, None, None]:
    """TestClient running the app lifespan against temporary stores."""
    with TestClient(create_app(test_config)) as client:
        yield client
