"""SQLite mirror of generated images: the secondary tier of the gallery."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from promptshare.core.errors import PermissionDeniedError, StoreError
from promptshare.core.models import DEFAULT_USER_NAME, Artifact

logger = logging.getLogger(__name__)

STORE_NAME = "mirror"


class GenerationMirror:
    """Local copy of the ``generations`` table.

    Every generated image is recorded here as private.  Sharing flips
    ``is_shared``; the gallery reads shared rows when the primary store is
    down.  Rows carry no likes or comments and no category: the gallery
    infers the category on read.

    Unlike a cache, failures here are reported as :class:`StoreError` so the
    reader can tell "no shared rows" apart from "mirror unavailable".
    """

    def __init__(self, db_path: Path):
        """Initialize the mirror database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_db()
        logger.info(f"Initialized generation mirror at {self.db_path}")

    def _initialize_db(self) -> None:
        """Create database schema if it doesn't exist."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS generations (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    user_name TEXT,
                    image_url TEXT NOT NULL,
                    prompt TEXT,
                    aspect_ratio TEXT,
                    rendering_style TEXT,
                    gender TEXT,
                    age TEXT,
                    is_shared INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMP NOT NULL
                )
                """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_generations_shared
                ON generations(is_shared, created_at DESC)
                """)

            conn.commit()

    def _row_to_artifact(self, row: sqlite3.Row) -> Artifact:
        created_at = datetime.fromisoformat(row["created_at"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return Artifact(
            id=row["id"],
            user_id=row["user_id"] or "unknown",
            user_name=row["user_name"] or DEFAULT_USER_NAME,
            image_url=row["image_url"],
            prompt=row["prompt"] or "",
            aspect_ratio=row["aspect_ratio"] or "1:1",
            rendering_style=row["rendering_style"] or "",
            gender=row["gender"] or "",
            age=row["age"] or "",
            created_at=created_at,
        )

    def record_generation(self, artifact: Artifact, *, shared: bool = False) -> None:
        """Insert or replace a generation row.

        Args:
            artifact: Image metadata to mirror.
            shared: Whether the row is already public.
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO generations (
                        id, user_id, user_name, image_url, prompt, aspect_ratio,
                        rendering_style, gender, age, is_shared, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        artifact.id,
                        artifact.user_id,
                        artifact.user_name,
                        artifact.image_url,
                        artifact.prompt,
                        artifact.aspect_ratio,
                        artifact.rendering_style,
                        artifact.gender,
                        artifact.age,
                        int(shared),
                        artifact.created_at.isoformat(),
                    ),
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error recording generation {artifact.id}: {e}")
            raise StoreError(STORE_NAME, str(e)) from e

    def mark_shared(self, generation_id: str) -> bool:
        """Flip a private generation to shared.

        There is no way back: a shared generation stays shared until deleted.

        Returns:
            True if a row was updated, False if the generation is unknown
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    "UPDATE generations SET is_shared = 1 WHERE id = ?",
                    (generation_id,),
                )
                conn.commit()
                was_updated = cursor.rowcount > 0
                if was_updated:
                    logger.info(f"Marked generation as shared: {generation_id}")
                else:
                    logger.debug(f"Generation not mirrored: {generation_id}")
                return was_updated
        except sqlite3.Error as e:
            logger.error(f"Error sharing generation {generation_id}: {e}")
            raise StoreError(STORE_NAME, str(e)) from e

    def delete_generation(self, generation_id: str, user_id: str | None = None) -> bool:
        """Remove a generation row.

        Args:
            generation_id: Row to delete.
            user_id: If given, the row must belong to this user.

        Returns:
            True if removed, False if it was not mirrored

        Raises:
            PermissionDeniedError: The row belongs to another user.
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT user_id FROM generations WHERE id = ?", (generation_id,)
                ).fetchone()
                if row is None:
                    return False
                if user_id is not None and row[0] != user_id:
                    raise PermissionDeniedError("Only the owner may delete an image")
                conn.execute("DELETE FROM generations WHERE id = ?", (generation_id,))
                conn.commit()
                logger.info(f"Deleted generation from mirror: {generation_id}")
                return True
        except sqlite3.Error as e:
            logger.error(f"Error deleting generation {generation_id}: {e}")
            raise StoreError(STORE_NAME, str(e)) from e

    def get_shared(self) -> list[Artifact]:
        """Get all shared generations, newest first."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.row_factory = sqlite3.Row
                rows = conn.execute(
                    """
                    SELECT * FROM generations
                    WHERE is_shared = 1
                    ORDER BY created_at DESC
                    """
                ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error reading shared generations: {e}")
            raise StoreError(STORE_NAME, str(e)) from e

        artifacts: list[Artifact] = []
        for row in rows:
            try:
                artifacts.append(self._row_to_artifact(row))
            except (ValueError, TypeError, ValidationError) as e:
                logger.warning(f"Skipping malformed mirror row {row['id']}: {e}")
        return artifacts

    def is_shared(self, generation_id: str) -> bool:
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT 1 FROM generations WHERE id = ? AND is_shared = 1 LIMIT 1",
                    (generation_id,),
                ).fetchone()
                return row is not None
        except sqlite3.Error as e:
            logger.error(f"Error checking shared status for {generation_id}: {e}")
            raise StoreError(STORE_NAME, str(e)) from e

    # Async entry points used by the gallery.  sqlite3 blocks, so each call
    # runs on a worker thread.

    async def fetch_shared(self) -> list[Artifact]:
        return await asyncio.to_thread(self.get_shared)

    async def share(self, artifact: Artifact) -> None:
        """Mirror a newly shared artifact.

        If the artifact came from a mirrored private generation, that row is
        flipped to shared; otherwise a new shared row is recorded.
        """
        if artifact.source_id and await asyncio.to_thread(self.mark_shared, artifact.source_id):
            return
        await asyncio.to_thread(self.record_generation, artifact, shared=True)

    async def remove(self, generation_id: str, user_id: str | None = None) -> bool:
        return await asyncio.to_thread(self.delete_generation, generation_id, user_id)

    async def check_shared(self, generation_id: str) -> bool:
        return await asyncio.to_thread(self.is_shared, generation_id)

    def clear(self) -> None:
        """Clear all generations from database.

        This is primarily for testing purposes.
        """
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM generations")
            conn.commit()
        logger.info(f"Cleared generation mirror at {self.db_path}")
