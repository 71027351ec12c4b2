"""Write path of the gallery: share, like, comment, delete and reclassify.

Every mutation is validated before any store is touched, then attempted on
the primary store.  When the primary store fails, times out, or does not know
the artifact, the same mutation is applied to the JSON file store instead.
Only a failure of the file store reaches the caller, as
:class:`~promptshare.core.errors.MutationFailedError`.

A successful mutation always invalidates the public cache key (and the file
store's in-memory snapshot) before returning, so the next read goes back to
the tiers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from promptshare.core.cache import PUBLIC_COLLECTION, CacheStore
from promptshare.core.categories import UNCATEGORIZED, CategoryScorer
from promptshare.core.errors import (
    ArtifactNotFoundError,
    InvalidArtifactError,
    MutationFailedError,
    StoreError,
)
from promptshare.core.models import (
    DEFAULT_COMMENTER_NAME,
    DEFAULT_USER_NAME,
    Artifact,
    ArtifactDraft,
    Comment,
)
from promptshare.stores.file_store import STORE_NAME as FILE_STORE
from promptshare.stores.file_store import FileStore
from promptshare.stores.mirror import GenerationMirror
from promptshare.stores.primary import STORE_NAME as PRIMARY_STORE
from promptshare.stores.primary import PrimaryStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _require(**values: str | None) -> None:
    missing = [name for name, value in values.items() if not value or not str(value).strip()]
    if missing:
        raise InvalidArtifactError(f"Missing required field(s): {', '.join(missing)}")


@dataclass
class CategoryChange:
    """A stored category rewritten by :meth:`MutationPipeline.reclassify`."""

    image_id: str
    old_category: str | None
    new_category: str
    store: str


class MutationPipeline:
    """Apply gallery mutations with primary-then-file fallback.

    Args:
        primary: Managed database tier.
        mirror: SQLite mirror; updated best effort on share and delete.
        file_store: JSON file tier used when the primary cannot take the write.
        cache: Cache whose public key is invalidated after each mutation.
        scorer: Category scorer for artifacts shared without a category.
        timeout: Seconds allowed for each primary/mirror call.
    """

    def __init__(
        self,
        primary: PrimaryStore,
        mirror: GenerationMirror,
        file_store: FileStore,
        cache: CacheStore,
        scorer: CategoryScorer,
        *,
        timeout: float = 5.0,
    ):
        self.primary = primary
        self.mirror = mirror
        self.file_store = file_store
        self.cache = cache
        self.scorer = scorer
        self.timeout = timeout

    def _invalidate(self) -> None:
        self.cache.invalidate(PUBLIC_COLLECTION)
        self.file_store.invalidate_snapshot()

    async def _with_fallback(
        self,
        action: str,
        on_primary: Callable[[], Awaitable[T]],
        on_file: Callable[[], Awaitable[T]],
    ) -> T:
        """Run *on_primary*, falling back to *on_file* when the primary can't serve it."""
        try:
            return await asyncio.wait_for(on_primary(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Primary store timed out while trying to {action}; using file store")
        except ArtifactNotFoundError as e:
            logger.info(f"{e.message} in primary store; trying file store to {action}")
        except StoreError as e:
            logger.warning(f"Primary store failed to {action}, using file store: {e}")

        try:
            return await on_file()
        except StoreError as e:
            logger.error(f"File store failed to {action}: {e}")
            raise MutationFailedError(
                f"Could not {action}: every store is unavailable, please try again later"
            ) from e

    async def create_artifact(self, draft: ArtifactDraft) -> Artifact:
        """Share a new artifact into the public gallery.

        The explicit category wins; otherwise one is inferred from the prompt
        and style label, falling back to ``other``.

        Raises:
            InvalidArtifactError: ``user_id`` or ``image_url`` is missing.
            MutationFailedError: Neither the primary nor the file store took the write.
        """
        _require(user_id=draft.user_id, image_url=draft.image_url)

        category = (draft.category or "").strip() or self.scorer.classify(
            draft.prompt, draft.rendering_style, fallback=UNCATEGORIZED
        )
        artifact = Artifact(
            user_id=draft.user_id,
            user_name=(draft.user_name or "").strip() or DEFAULT_USER_NAME,
            image_url=draft.image_url,
            prompt=draft.prompt,
            rendering_style=draft.rendering_style,
            aspect_ratio=draft.aspect_ratio or "1:1",
            category=category,
            source_id=draft.source_id,
            gender=draft.gender,
            age=draft.age,
        )

        stored = await self._with_fallback(
            "share the image",
            lambda: self.primary.insert_artifact(artifact),
            lambda: self.file_store.add_artifact(artifact),
        )

        try:
            await asyncio.wait_for(self.mirror.share(stored), timeout=self.timeout)
        except (asyncio.TimeoutError, StoreError) as e:
            logger.warning(f"Could not mirror shared artifact {stored.id}: {e}")

        self._invalidate()
        logger.info(f"Shared artifact {stored.id} as '{stored.category}'")
        return stored

    async def toggle_like(self, image_id: str, user_id: str) -> tuple[bool, int]:
        """Like the artifact, or remove the like if *user_id* already liked it.

        Returns:
            Tuple of ``(liked, like_count)`` after the toggle.
        """
        _require(image_id=image_id, user_id=user_id)
        result = await self._with_fallback(
            "update the like",
            lambda: self.primary.toggle_like(image_id, user_id),
            lambda: self.file_store.toggle_like(image_id, user_id),
        )
        self._invalidate()
        liked, count = result
        logger.info(f"User {user_id} {'liked' if liked else 'unliked'} {image_id} ({count} likes)")
        return result

    async def add_comment(
        self,
        image_id: str,
        user_id: str,
        text: str,
        user_name: str | None = None,
    ) -> Comment:
        _require(image_id=image_id, user_id=user_id, text=text)
        comment = Comment(
            image_id=image_id,
            user_id=user_id,
            user_name=(user_name or "").strip() or DEFAULT_COMMENTER_NAME,
            text=text.strip(),
        )
        stored = await self._with_fallback(
            "add the comment",
            lambda: self.primary.add_comment(comment),
            lambda: self.file_store.add_comment(comment),
        )
        self._invalidate()
        logger.info(f"Added comment {stored.id} to {image_id}")
        return stored

    async def delete_comment(self, image_id: str, comment_id: str, requester_id: str) -> None:
        _require(image_id=image_id, comment_id=comment_id, requester_id=requester_id)
        await self._with_fallback(
            "delete the comment",
            lambda: self.primary.delete_comment(image_id, comment_id, requester_id),
            lambda: self.file_store.delete_comment(image_id, comment_id, requester_id),
        )
        self._invalidate()
        logger.info(f"Deleted comment {comment_id} from {image_id}")

    async def delete_artifact(self, image_id: str, requester_id: str) -> None:
        """Remove an artifact from every tier that holds it.

        Unlike the other mutations, delete visits all three tiers so a shared
        image cannot resurface from a lower tier.

        Raises:
            PermissionDeniedError: A tier holds the artifact under another owner.
            ArtifactNotFoundError: No tier holds the artifact.
            MutationFailedError: The file store failed and no other tier held it.
        """
        _require(image_id=image_id, requester_id=requester_id)

        source_id = await self._source_id_of(image_id)
        removed = False

        try:
            removed = await asyncio.wait_for(
                self.primary.delete_artifact(image_id, requester_id), timeout=self.timeout
            )
        except (asyncio.TimeoutError, StoreError) as e:
            logger.warning(f"Primary store could not delete {image_id}: {e}")

        for generation_id in dict.fromkeys(filter(None, (image_id, source_id))):
            try:
                removed = (
                    await asyncio.wait_for(
                        self.mirror.remove(generation_id, requester_id), timeout=self.timeout
                    )
                    or removed
                )
            except (asyncio.TimeoutError, StoreError) as e:
                logger.warning(f"Mirror could not delete {generation_id}: {e}")

        try:
            removed = await self.file_store.delete_artifact(image_id, requester_id) or removed
        except StoreError as e:
            if not removed:
                raise MutationFailedError(
                    "Could not delete the image: every store is unavailable, please try again later"
                ) from e
            logger.warning(f"File store could not delete {image_id}: {e}")

        if not removed:
            raise ArtifactNotFoundError(image_id)

        self._invalidate()
        logger.info(f"Deleted artifact {image_id}")

    async def _source_id_of(self, image_id: str) -> str | None:
        try:
            artifact = await asyncio.wait_for(self.primary.get_artifact(image_id), timeout=self.timeout)
        except (asyncio.TimeoutError, StoreError) as e:
            logger.debug(f"Primary lookup of {image_id} failed: {e}")
            artifact = None
        if artifact is None:
            try:
                artifact = await self.file_store.get(image_id)
            except StoreError as e:
                logger.debug(f"File lookup of {image_id} failed: {e}")
                artifact = None
        return artifact.source_id if artifact else None

    async def reclassify(self, image_ids: list[str] | None = None) -> list[CategoryChange]:
        """Re-run the scorer over stored artifacts and persist changed categories.

        The primary and the file store are both visited, since the file store
        holds shares written while the primary was down.  Mirror rows carry no
        category and are skipped.  Stored categories are replaced even when
        they were chosen explicitly at share time.

        Args:
            image_ids: Artifacts to reclassify; every stored artifact when ``None``.

        Returns:
            One :class:`CategoryChange` per artifact whose category changed.

        Raises:
            InvalidArtifactError: *image_ids* is given but holds no usable id.
            MutationFailedError: Neither store could be reclassified.
        """
        if image_ids is not None:
            image_ids = list(dict.fromkeys(i.strip() for i in image_ids if i and i.strip()))
            if not image_ids:
                raise InvalidArtifactError("Missing required field(s): image_ids")

        changes: list[CategoryChange] = []
        primary_failed = False
        try:
            stored = await asyncio.wait_for(self.primary.fetch_artifacts(image_ids), timeout=self.timeout)
            primary_changes = self._category_changes(stored, PRIMARY_STORE)
            if primary_changes:
                await asyncio.wait_for(
                    self.primary.update_categories(
                        {change.image_id: change.new_category for change in primary_changes}
                    ),
                    timeout=self.timeout,
                )
            changes.extend(primary_changes)
        except (asyncio.TimeoutError, StoreError) as e:
            primary_failed = True
            logger.warning(f"Primary store could not be reclassified: {e}")

        try:
            entries = await self.file_store.fetch_all()
            if image_ids is not None:
                wanted = set(image_ids)
                entries = [entry for entry in entries if entry.id in wanted]
            file_changes = self._category_changes(entries, FILE_STORE)
            if file_changes:
                await self.file_store.update_categories(
                    {change.image_id: change.new_category for change in file_changes}
                )
            changes.extend(file_changes)
        except StoreError as e:
            if primary_failed:
                logger.error(f"File store could not be reclassified: {e}")
                raise MutationFailedError(
                    "Could not reclassify images: every store is unavailable, please try again later"
                ) from e
            logger.warning(f"File store could not be reclassified: {e}")

        if changes:
            self._invalidate()
        logger.info(f"Reclassified {len(changes)} artifacts")
        return changes

    def _category_changes(self, artifacts: list[Artifact], store: str) -> list[CategoryChange]:
        changes = []
        for artifact in artifacts:
            category = self.scorer.classify(
                artifact.prompt, artifact.rendering_style, fallback=UNCATEGORIZED
            )
            if category != artifact.category:
                changes.append(CategoryChange(artifact.id, artifact.category, category, store))
        return changes
