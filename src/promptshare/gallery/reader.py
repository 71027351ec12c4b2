"""Tiered read-through of the public gallery collection.

Tiers are consulted strictly in order, one at a time:

1. the primary database (artifacts, then comments, then likes),
2. the SQLite mirror of shared generations,
3. the JSON file, created empty on first use.

A tier that raises :class:`~promptshare.core.errors.StoreError` or exceeds the
store timeout is logged and skipped; nothing is raised to the caller.  An
error-free answer ends the walk, even when it is empty, unless
``fall_through_on_empty`` is set.  Results are never merged across tiers.

Every artifact leaving the reader has a category: the primary store's stored
value is trusted when present, everything else goes through the scorer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from promptshare.core.categories import UNCATEGORIZED, CategoryScorer
from promptshare.core.errors import StoreError
from promptshare.core.models import Artifact
from promptshare.stores.file_store import FileStore
from promptshare.stores.mirror import GenerationMirror
from promptshare.stores.primary import PrimaryStore

logger = logging.getLogger(__name__)

TIER_PRIMARY = "primary"
TIER_MIRROR = "mirror"
TIER_FILE = "file"
TIER_NONE = "none"


@dataclass
class TierResult:
    """Artifacts returned by a read and the tier that produced them."""

    tier: str
    artifacts: list[Artifact] = field(default_factory=list)


def ensure_category(artifact: Artifact, scorer: CategoryScorer) -> Artifact:
    """Return *artifact* with a non-empty category, classifying if needed."""
    if artifact.category and artifact.category.strip():
        return artifact
    category = scorer.classify(artifact.prompt, artifact.rendering_style, fallback=UNCATEGORIZED)
    return artifact.model_copy(update={"category": category})


class TieredReader:
    """Read the public collection from the first tier that answers.

    Args:
        primary: Managed database tier.
        mirror: SQLite mirror tier.
        file_store: JSON file tier.
        scorer: Category scorer used for artifacts without a category.
        timeout: Seconds allowed for each primary/mirror call.
        fall_through_on_empty: Keep going when a tier answers with no rows.
    """

    def __init__(
        self,
        primary: PrimaryStore,
        mirror: GenerationMirror,
        file_store: FileStore,
        scorer: CategoryScorer,
        *,
        timeout: float = 5.0,
        fall_through_on_empty: bool = False,
    ):
        self.primary = primary
        self.mirror = mirror
        self.file_store = file_store
        self.scorer = scorer
        self.timeout = timeout
        self.fall_through_on_empty = fall_through_on_empty

    async def _attempt(
        self,
        tier: str,
        fetch: Callable[[], Awaitable[list[Artifact]]],
        *,
        timeout: float | None,
    ) -> list[Artifact] | None:
        try:
            if timeout is None:
                return await fetch()
            return await asyncio.wait_for(fetch(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{tier} tier timed out after {timeout}s, falling through")
        except StoreError as e:
            logger.warning(f"{tier} tier failed, falling through: {e}")
        return None

    async def fetch_collection(self) -> TierResult:
        """Return the public collection from the first answering tier.

        Returns:
            :class:`TierResult` naming the tier; ``tier == "none"`` with an
            empty list when every tier failed.
        """
        tiers: tuple[tuple[str, Callable[[], Awaitable[list[Artifact]]], float | None], ...] = (
            (TIER_PRIMARY, self.primary.fetch_public_artifacts, self.timeout),
            (TIER_MIRROR, self.mirror.fetch_shared, self.timeout),
            (TIER_FILE, self.file_store.fetch_all, None),
        )
        last = len(tiers) - 1
        for index, (tier, fetch, timeout) in enumerate(tiers):
            artifacts = await self._attempt(tier, fetch, timeout=timeout)
            if artifacts is None:
                continue
            if not artifacts and self.fall_through_on_empty and index < last:
                logger.info(f"{tier} tier returned no artifacts, trying next tier")
                continue
            logger.info(f"Read {len(artifacts)} artifacts from {tier} tier")
            return TierResult(tier, [ensure_category(a, self.scorer) for a in artifacts])

        logger.error("Every gallery tier failed; returning an empty collection")
        return TierResult(TIER_NONE, [])
