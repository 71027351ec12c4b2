"""JSON file store: the last-resort tier of the gallery.

The whole collection lives in a single JSON list (``shared-images.json``),
newest first.  The file is created lazily: reading a missing file writes an
empty list and returns it, so the tier always answers.

Reads are forgiving in the same way as the rest of the gallery:

- if the JSON is invalid or not a list, the collection is treated as empty
- entries that fail validation are dropped (and the cleaned list persisted)

Mutations are read-modify-write cycles serialized by a process-local
:class:`asyncio.Lock`.  The store keeps the last list it read or wrote in
memory; :meth:`FileStore.invalidate_snapshot` drops it so the next access goes
back to disk.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from pydantic import ValidationError

from promptshare.core.errors import (
    ArtifactNotFoundError,
    CommentNotFoundError,
    PermissionDeniedError,
    StoreError,
)
from promptshare.core.models import Artifact, Comment

logger = logging.getLogger(__name__)

STORE_NAME = "file"


def load_shared_entries(path: Path) -> list[Artifact]:
    """Load the JSON list at *path*, creating it if it does not exist.

    Args:
        path: Location of the JSON file.

    Returns:
        Surviving artifacts in persisted order.

    Raises:
        StoreError: If the file cannot be created or read.
    """
    try:
        if not path.exists():
            save_shared_entries(path, [])
            logger.info(f"Initialised empty shared image list at {path}")
            return []
        with open(path, encoding="utf-8") as handle:
            raw_entries = json.load(handle)
    except json.JSONDecodeError as e:
        logger.warning(f"Shared image list {path} is not valid JSON, treating as empty: {e}")
        raw_entries = []
    except OSError as e:
        raise StoreError(STORE_NAME, f"cannot read {path}: {e}") from e

    if not isinstance(raw_entries, list):
        raw_entries = []

    entries: list[Artifact] = []
    dropped = 0
    for raw in raw_entries:
        try:
            entries.append(Artifact.model_validate(raw))
        except ValidationError:
            dropped += 1

    if dropped:
        logger.warning(f"Dropped {dropped} malformed entries from {path}")
        save_shared_entries(path, entries)

    return entries


def save_shared_entries(path: Path, entries: list[Artifact]) -> None:
    """Persist *entries* to *path* with 2-space indentation.

    Raises:
        StoreError: If the file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as handle:
            json.dump([entry.model_dump(mode="json") for entry in entries], handle, indent=2)
    except OSError as e:
        raise StoreError(STORE_NAME, f"cannot write {path}: {e}") from e


def _find(entries: list[Artifact], image_id: str) -> Artifact:
    for entry in entries:
        if entry.id == image_id:
            return entry
    raise ArtifactNotFoundError(image_id)


class FileStore:
    """Async facade over the JSON list used as the fallback tier.

    Args:
        path: Location of the JSON file.
        max_entries: Oldest entries beyond this count are dropped on insert.
    """

    def __init__(self, path: Path, max_entries: int = 100):
        self.path = Path(path)
        self.max_entries = max_entries
        self._lock = asyncio.Lock()
        self._snapshot: list[Artifact] | None = None

    def invalidate_snapshot(self) -> None:
        self._snapshot = None

    def _entries(self) -> list[Artifact]:
        if self._snapshot is None:
            self._snapshot = load_shared_entries(self.path)
        return [entry.model_copy(deep=True) for entry in self._snapshot]

    def _commit(self, entries: list[Artifact]) -> None:
        # drop the snapshot first so a failed write never leaves it ahead of disk
        self._snapshot = None
        save_shared_entries(self.path, entries)
        self._snapshot = entries

    async def fetch_all(self) -> list[Artifact]:
        """Return every stored artifact, newest first."""
        async with self._lock:
            return self._entries()

    async def get(self, image_id: str) -> Artifact | None:
        async with self._lock:
            return next((entry for entry in self._entries() if entry.id == image_id), None)

    async def add_artifact(self, artifact: Artifact) -> Artifact:
        """Insert *artifact* at the head of the list with no likes or comments."""
        stored = artifact.model_copy(update={"likes": 0, "liked_by": [], "comments": []})
        async with self._lock:
            entries = self._entries()
            entries.insert(0, stored)
            del entries[self.max_entries :]
            self._commit(entries)
        logger.info(f"Stored artifact {stored.id} in {self.path}")
        return stored

    async def toggle_like(self, image_id: str, user_id: str) -> tuple[bool, int]:
        """Flip *user_id*'s like on an artifact.

        Returns:
            Tuple of ``(liked, like_count)`` after the toggle.
        """
        async with self._lock:
            entries = self._entries()
            entry = _find(entries, image_id)
            if user_id in entry.liked_by:
                entry.liked_by.remove(user_id)
                entry.likes = max(entry.likes - 1, 0)
                liked = False
            else:
                entry.liked_by.append(user_id)
                entry.likes += 1
                liked = True
            self._commit(entries)
        return liked, entry.likes

    async def add_comment(self, comment: Comment) -> Comment:
        async with self._lock:
            entries = self._entries()
            entry = _find(entries, comment.image_id)
            entry.comments.append(comment)
            self._commit(entries)
        return comment

    async def delete_comment(self, image_id: str, comment_id: str, requester_id: str) -> None:
        """Remove a comment if *requester_id* wrote it or owns the artifact.

        Raises:
            ArtifactNotFoundError: Unknown artifact.
            CommentNotFoundError: Unknown comment on that artifact.
            PermissionDeniedError: Requester is neither author nor owner.
        """
        async with self._lock:
            entries = self._entries()
            entry = _find(entries, image_id)
            comment = next((c for c in entry.comments if c.id == comment_id), None)
            if comment is None:
                raise CommentNotFoundError(comment_id)
            if requester_id not in (comment.user_id, entry.user_id):
                raise PermissionDeniedError("Only the author or the image owner may delete a comment")
            entry.comments = [c for c in entry.comments if c.id != comment_id]
            self._commit(entries)

    async def delete_artifact(self, image_id: str, requester_id: str) -> bool:
        """Remove an artifact owned by *requester_id*.

        Returns:
            ``True`` if the artifact was removed, ``False`` if it was not stored here.
        """
        async with self._lock:
            entries = self._entries()
            entry = next((e for e in entries if e.id == image_id), None)
            if entry is None:
                return False
            if entry.user_id != requester_id:
                raise PermissionDeniedError("Only the owner may delete an image")
            self._commit([e for e in entries if e.id != image_id])
        logger.info(f"Removed artifact {image_id} from {self.path}")
        return True

    async def update_categories(self, categories: dict[str, str]) -> int:
        """Set ``category`` per image id; ids not stored here are ignored.

        Returns:
            Number of entries updated.
        """
        async with self._lock:
            entries = self._entries()
            updated = 0
            for entry in entries:
                if entry.id in categories:
                    entry.category = categories[entry.id]
                    updated += 1
            if updated:
                self._commit(entries)
        return updated
