"""Gallery Read Service: the public surface of the community gallery.

The service owns the cache and wires together the tiered reader and the
mutation pipeline.  Reads go through the cache; a snapshot younger than
``cache_max_age_seconds`` is served as-is unless the caller forces a refresh.
Mutations are delegated to the pipeline, which invalidates the same cache.

Example::

    service = build_gallery_service(config)
    await service.start()
    result = await service.list_artifacts()
    await service.close()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from promptshare.core.cache import PUBLIC_COLLECTION, CacheStore
from promptshare.core.categories import DEFAULT_CATEGORY, CategoryScorer, default_scorer
from promptshare.core.config import GalleryConfig
from promptshare.core.errors import ArtifactNotFoundError, StoreError
from promptshare.core.models import Artifact, ArtifactDraft, Comment
from promptshare.gallery.mutations import CategoryChange, MutationPipeline
from promptshare.gallery.reader import TIER_NONE, TieredReader
from promptshare.stores.file_store import FileStore
from promptshare.stores.mirror import GenerationMirror
from promptshare.stores.primary import PrimaryStore

logger = logging.getLogger(__name__)

SOURCE_CACHE = "cache"
SOURCE_FRESH = "fresh"


@dataclass
class ReadResult:
    """Outcome of a collection read.

    Attributes:
        artifacts: Artifacts newest first, each with a category.
        source: ``"cache"`` for a fresh snapshot, ``"fresh"`` for a tier read.
        tier: Tier that produced the snapshot (``primary``, ``mirror``,
            ``file`` or ``none``).
    """

    artifacts: list[Artifact] = field(default_factory=list)
    source: str = SOURCE_FRESH
    tier: str = TIER_NONE


class GalleryService:
    """Cached reads and tier-aware writes for the public gallery.

    Args:
        primary: Managed database tier.
        mirror: SQLite mirror tier.
        file_store: JSON file tier.
        settings: Gallery configuration (cache window, timeouts).
        scorer: Category scorer; the shared default table when omitted.
        cache: Cache to own; a new one using *clock* when omitted.
        clock: Clock for a newly created cache.
    """

    def __init__(
        self,
        primary: PrimaryStore,
        mirror: GenerationMirror,
        file_store: FileStore,
        settings: GalleryConfig,
        *,
        scorer: CategoryScorer | None = None,
        cache: CacheStore | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.primary = primary
        self.mirror = mirror
        self.file_store = file_store
        self.settings = settings
        self.scorer = scorer or default_scorer
        if cache is None:
            cache = CacheStore(clock) if clock is not None else CacheStore()
        self.cache = cache
        self._tiers: dict[str, str] = {}

        self.reader = TieredReader(
            primary,
            mirror,
            file_store,
            self.scorer,
            timeout=settings.store_timeout_seconds,
            fall_through_on_empty=settings.fall_through_on_empty,
        )
        self.mutations = MutationPipeline(
            primary,
            mirror,
            file_store,
            self.cache,
            self.scorer,
            timeout=settings.store_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Prepare the stores; creates primary tables when configured to."""
        if self.settings.create_schema:
            try:
                await self.primary.create_schema()
            except StoreError as e:
                logger.warning(f"Could not create primary schema, reads will fall through: {e}")
        logger.info(
            f"Gallery service started (primary {'enabled' if self.primary.enabled else 'disabled'}, "
            f"cache window {self.settings.cache_max_age_seconds}s)"
        )

    async def close(self) -> None:
        await self.primary.close()
        self.cache.clear()
        self._tiers.clear()
        logger.info("Gallery service closed")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_artifacts(self, force_refresh: bool = False) -> ReadResult:
        """Return the public collection, from cache when the snapshot is fresh.

        Args:
            force_refresh: Drop the cached snapshot before the lookup.

        Returns:
            :class:`ReadResult`.  Never raises for store failures; when every
            tier fails the list is empty and nothing is cached.
        """
        if force_refresh:
            self.cache.invalidate(PUBLIC_COLLECTION)

        entry = self.cache.get(PUBLIC_COLLECTION)
        if entry is not None and self.cache.is_fresh(entry, self.settings.cache_max_age_seconds):
            logger.debug(f"Serving {len(entry.artifacts)} artifacts from cache")
            return ReadResult(
                list(entry.artifacts),
                SOURCE_CACHE,
                self._tiers.get(PUBLIC_COLLECTION, TIER_NONE),
            )

        # the file tier is re-read from disk on every refresh
        self.file_store.invalidate_snapshot()
        result = await self.reader.fetch_collection()
        if result.tier == TIER_NONE:
            self.cache.invalidate(PUBLIC_COLLECTION)
        else:
            self.cache.put(PUBLIC_COLLECTION, result.artifacts)
            self._tiers[PUBLIC_COLLECTION] = result.tier
        return ReadResult(list(result.artifacts), SOURCE_FRESH, result.tier)

    async def get_artifact(self, image_id: str) -> Artifact:
        """Return one artifact from the (cached) public listing.

        Raises:
            ArtifactNotFoundError: The artifact is not in the listing.
        """
        result = await self.list_artifacts()
        for artifact in result.artifacts:
            if artifact.id == image_id:
                return artifact
        raise ArtifactNotFoundError(image_id)

    async def is_liked(self, image_id: str, user_id: str) -> bool:
        artifact = await self.get_artifact(image_id)
        return user_id in artifact.liked_by

    async def check_shared(self, source_id: str) -> bool:
        """Return whether the generation *source_id* has been shared.

        The primary store answers first; the mirror and then the file store
        are asked only when the tier above fails.
        """
        try:
            return await asyncio.wait_for(
                self.primary.is_shared(source_id), timeout=self.settings.store_timeout_seconds
            )
        except (asyncio.TimeoutError, StoreError) as e:
            logger.warning(f"Primary store could not check {source_id}, trying mirror: {e}")

        try:
            return await asyncio.wait_for(
                self.mirror.check_shared(source_id), timeout=self.settings.store_timeout_seconds
            )
        except (asyncio.TimeoutError, StoreError) as e:
            logger.warning(f"Mirror could not check {source_id}, trying file store: {e}")

        try:
            entries = await self.file_store.fetch_all()
        except StoreError as e:
            logger.error(f"No store could check whether {source_id} was shared: {e}")
            return False
        return any(source_id in (entry.source_id, entry.id) for entry in entries)

    def classify_preview(self, description: str, style_label: str) -> str:
        """Category suggestion shown while generating; defaults to ``portrait``."""
        return self.scorer.classify(description, style_label, fallback=DEFAULT_CATEGORY)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def share(self, draft: ArtifactDraft) -> Artifact:
        return await self.mutations.create_artifact(draft)

    async def toggle_like(self, image_id: str, user_id: str) -> tuple[bool, int]:
        return await self.mutations.toggle_like(image_id, user_id)

    async def add_comment(
        self, image_id: str, user_id: str, text: str, user_name: str | None = None
    ) -> Comment:
        return await self.mutations.add_comment(image_id, user_id, text, user_name)

    async def delete_comment(self, image_id: str, comment_id: str, requester_id: str) -> None:
        await self.mutations.delete_comment(image_id, comment_id, requester_id)

    async def delete_artifact(self, image_id: str, requester_id: str) -> None:
        await self.mutations.delete_artifact(image_id, requester_id)

    async def reclassify(self, image_ids: list[str] | None = None) -> list[CategoryChange]:
        """Recompute stored categories; every artifact when *image_ids* is ``None``."""
        return await self.mutations.reclassify(image_ids)


def build_gallery_service(
    settings: GalleryConfig,
    *,
    clock: Callable[[], float] | None = None,
) -> GalleryService:
    """Create the three stores from *settings* and wrap them in a service."""
    return GalleryService(
        PrimaryStore(settings.database_url),
        GenerationMirror(settings.mirror_db_path),
        FileStore(settings.shared_images_path, max_entries=settings.file_store_max_entries),
        settings,
        clock=clock,
    )
