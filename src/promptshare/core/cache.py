"""Process-local snapshot cache for gallery collections.

Each collection key (``"public"`` for the community listing) holds at most one
:class:`CacheEntry`: the full ordered artifact list plus the clock reading
taken when it was stored.  Entries are replaced wholesale, never patched.

There is no lock.  ``put`` and ``invalidate`` are last-writer-wins; a slow read
that started before a mutation may repopulate the key with pre-mutation data,
and the next expiry or mutation corrects it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from promptshare.core.models import Artifact

logger = logging.getLogger(__name__)

PUBLIC_COLLECTION = "public"


@dataclass(frozen=True)
class CacheEntry:
    """An immutable snapshot of one collection."""

    artifacts: tuple[Artifact, ...]
    fetched_at: float


class CacheStore:
    """Keyed snapshot cache with an injectable clock.

    Args:
        clock: Zero-argument callable returning seconds.  Defaults to
            :func:`time.monotonic`.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def put(self, key: str, artifacts: Iterable[Artifact]) -> CacheEntry:
        """Replace the snapshot for *key* and stamp it with the current time."""
        entry = CacheEntry(artifacts=tuple(artifacts), fetched_at=self._clock())
        self._entries[key] = entry
        logger.debug(f"Cached {len(entry.artifacts)} artifacts under '{key}'")
        return entry

    def invalidate(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            logger.debug(f"Invalidated cache key '{key}'")

    def is_fresh(self, entry: CacheEntry, max_age: float) -> bool:
        """Return ``True`` if *entry* is younger than *max_age* seconds."""
        return self._clock() - entry.fetched_at < max_age

    def clear(self) -> None:
        self._entries.clear()
