"""Tests for promptshare.stores.mirror - the SQLite generations mirror."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from promptshare.core.errors import PermissionDeniedError, StoreError
from promptshare.stores.mirror import GenerationMirror


@pytest.mark.unit
class TestGenerationMirror:
    """Test the synchronous mirror API."""

    def test_creates_database_file(self, temp_dir):
        GenerationMirror(temp_dir / "nested" / "generations.db")
        assert (temp_dir / "nested" / "generations.db").exists()

    def test_private_generations_not_listed(self, mirror, make_artifact):
        mirror.record_generation(make_artifact(id="gen-1"))
        assert mirror.get_shared() == []
        assert mirror.is_shared("gen-1") is False

    def test_mark_shared(self, mirror, make_artifact):
        mirror.record_generation(make_artifact(id="gen-1", prompt="a red fox"))
        assert mirror.mark_shared("gen-1") is True

        shared = mirror.get_shared()
        assert [a.id for a in shared] == ["gen-1"]
        assert shared[0].prompt == "a red fox"
        assert mirror.is_shared("gen-1") is True

    def test_mark_unknown_generation(self, mirror):
        assert mirror.mark_shared("missing") is False

    def test_shared_rows_newest_first(self, mirror, make_artifact):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        mirror.record_generation(make_artifact(id="old", created_at=base), shared=True)
        mirror.record_generation(
            make_artifact(id="new", created_at=base + timedelta(hours=1)), shared=True
        )
        assert [a.id for a in mirror.get_shared()] == ["new", "old"]

    def test_rows_carry_no_category(self, mirror, make_artifact):
        """Categories are inferred on read, never stored in the mirror."""
        mirror.record_generation(make_artifact(id="gen-1", category="anime"), shared=True)
        assert mirror.get_shared()[0].category is None

    def test_delete_generation_checks_owner(self, mirror, make_artifact):
        mirror.record_generation(make_artifact(id="gen-1", user_id="owner"), shared=True)
        with pytest.raises(PermissionDeniedError):
            mirror.delete_generation("gen-1", "stranger")
        assert mirror.delete_generation("gen-1", "owner") is True
        assert mirror.delete_generation("gen-1", "owner") is False

    def test_corrupt_database_raises_store_error(self, mirror):
        """A broken mirror reports failure instead of an empty list."""
        mirror.db_path.write_bytes(b"this is not a sqlite database" * 100)
        with pytest.raises(StoreError):
            mirror.get_shared()

    def test_malformed_rows_skipped(self, mirror, make_artifact):
        """A row written by another tool with a bad timestamp is left out."""
        mirror.record_generation(make_artifact(id="good"), shared=True)
        with sqlite3.connect(mirror.db_path) as conn:
            conn.execute(
                "INSERT INTO generations (id, image_url, is_shared, created_at) VALUES (?, ?, 1, ?)",
                ("bad-date", "https://cdn.example.com/x.png", "last tuesday"),
            )
            conn.execute(
                "INSERT INTO generations (id, image_url, is_shared, created_at) VALUES (?, ?, 1, ?)",
                ("bad-type", "https://cdn.example.com/y.png", 1718000000),
            )
            conn.commit()

        assert [a.id for a in mirror.get_shared()] == ["good"]

    def test_clear(self, mirror, make_artifact):
        mirror.record_generation(make_artifact(id="gen-1"), shared=True)
        mirror.clear()
        assert mirror.get_shared() == []


@pytest.mark.unit
class TestMirrorAsync:
    """Test the async entry points used by the gallery."""

    def test_share_flips_source_generation(self, mirror, make_artifact):
        """Sharing with a known source id marks that generation shared."""
        mirror.record_generation(make_artifact(id="gen-1"))
        shared = make_artifact(id="img-1", source_id="gen-1")

        asyncio.run(mirror.share(shared))

        assert mirror.is_shared("gen-1") is True
        assert [a.id for a in mirror.get_shared()] == ["gen-1"]

    def test_share_without_source_records_row(self, mirror, make_artifact):
        asyncio.run(mirror.share(make_artifact(id="img-1")))
        assert [a.id for a in asyncio.run(mirror.fetch_shared())] == ["img-1"]

    def test_share_with_unknown_source_records_row(self, mirror, make_artifact):
        asyncio.run(mirror.share(make_artifact(id="img-1", source_id="not-mirrored")))
        assert asyncio.run(mirror.check_shared("img-1")) is True

    def test_remove(self, mirror, make_artifact):
        mirror.record_generation(make_artifact(id="gen-1"), shared=True)
        assert asyncio.run(mirror.remove("gen-1")) is True
        assert asyncio.run(mirror.check_shared("gen-1")) is False
