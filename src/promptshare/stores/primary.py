"""Primary store: the managed Postgres database behind the gallery.

Tables mirror the hosted schema (``shared_images``, ``comments``, ``likes``)
and are accessed through SQLAlchemy's asyncio extension.  Every database
failure is re-raised as :class:`~promptshare.core.errors.StoreError`, which is
distinct from an empty result, so callers can fall through on errors only.

When no database URL is configured the store stays disabled and every call
raises :class:`~promptshare.core.errors.StoreUnavailableError`.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    delete,
    func,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from promptshare.core.errors import (
    ArtifactNotFoundError,
    CommentNotFoundError,
    PermissionDeniedError,
    StoreError,
    StoreUnavailableError,
)
from promptshare.core.models import DEFAULT_USER_NAME, Artifact, Comment, new_id, utc_now

logger = logging.getLogger(__name__)

STORE_NAME = "primary"

Base = declarative_base()


class SharedImageRecord(Base):
    """Row of the ``shared_images`` table."""

    __tablename__ = "shared_images"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(Text, nullable=False)
    user_name = Column(Text, nullable=False, default=DEFAULT_USER_NAME)
    image_url = Column(Text, nullable=False)
    prompt = Column(Text, nullable=True)
    aspect_ratio = Column(Text, default="1:1")
    rendering_style = Column(Text, nullable=True)
    gender = Column(Text, nullable=True)
    age = Column(Text, nullable=True)
    category = Column(Text, nullable=True)
    like_count = Column(Integer, nullable=False, default=0)
    show_on_community = Column(Boolean, nullable=False, default=True, index=True)
    original_generation_id = Column(Text, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)


class CommentRecord(Base):
    """Row of the ``comments`` table."""

    __tablename__ = "comments"

    id = Column(String, primary_key=True, default=new_id)
    image_id = Column(String, nullable=False, index=True)
    user_id = Column(Text, nullable=False)
    user_name = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class LikeRecord(Base):
    """Row of the ``likes`` table; one per (image, user)."""

    __tablename__ = "likes"
    __table_args__ = (UniqueConstraint("image_id", "user_id", name="uq_likes_image_user"),)

    id = Column(String, primary_key=True, default=new_id)
    image_id = Column(String, nullable=False, index=True)
    user_id = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


def _aware(value):
    # SQLite drops tzinfo on round trip
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_comment(record: CommentRecord) -> Comment:
    return Comment(
        id=record.id,
        image_id=record.image_id,
        user_id=record.user_id,
        user_name=record.user_name,
        text=record.content,
        created_at=_aware(record.created_at),
    )


def _to_artifact(
    record: SharedImageRecord,
    comments: list[Comment] | None = None,
    liked_by: list[str] | None = None,
) -> Artifact:
    return Artifact(
        id=record.id,
        user_id=record.user_id,
        user_name=record.user_name or DEFAULT_USER_NAME,
        image_url=record.image_url,
        prompt=record.prompt or "",
        rendering_style=record.rendering_style or "",
        aspect_ratio=record.aspect_ratio or "1:1",
        category=record.category or None,
        likes=max(record.like_count or 0, 0),
        liked_by=liked_by or [],
        comments=comments or [],
        created_at=_aware(record.created_at),
        source_id=record.original_generation_id,
        gender=record.gender or "",
        age=record.age or "",
    )


class PrimaryStore:
    """Async access to the hosted gallery tables.

    Args:
        database_url: SQLAlchemy async URL.  Empty disables the store.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

        if database_url:
            engine_args: dict = {"echo": False}
            if database_url.startswith("postgresql"):
                engine_args.update({"pool_size": 10, "max_overflow": 20, "pool_pre_ping": True})
            self.engine = create_async_engine(database_url, **engine_args)
            self._sessions = async_sessionmaker(self.engine, expire_on_commit=False)
        else:
            logger.info("No primary database configured; primary tier disabled")

    @property
    def enabled(self) -> bool:
        return self.engine is not None

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session, committing on success and mapping DB errors."""
        if self._sessions is None:
            raise StoreUnavailableError(STORE_NAME, "no database URL configured")
        async with self._sessions() as session:
            try:
                yield session
                await session.commit()
            except (SQLAlchemyError, OSError) as e:
                # drivers raise OSError directly when the server is unreachable
                raise StoreError(STORE_NAME, str(e) or type(e).__name__) from e

    async def create_schema(self) -> None:
        if self.engine is None:
            return
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(STORE_NAME, f"schema creation failed: {e}") from e
        logger.info("Primary store schema ensured")

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Primary store connections closed")

    async def fetch_public_artifacts(self) -> list[Artifact]:
        """Return community-visible artifacts, newest first, with comments and likes.

        Comments are loaded in a second query (oldest first) and grouped by
        artifact id; like rows are grouped the same way into ``liked_by``.
        """
        async with self._session() as session:
            result = await session.execute(
                select(SharedImageRecord)
                .where(SharedImageRecord.show_on_community.is_(True))
                .order_by(SharedImageRecord.created_at.desc())
            )
            records = result.scalars().all()
            if not records:
                return []

            ids = [record.id for record in records]
            comment_rows = await session.execute(
                select(CommentRecord)
                .where(CommentRecord.image_id.in_(ids))
                .order_by(CommentRecord.created_at.asc())
            )
            comments_by_image: dict[str, list[Comment]] = defaultdict(list)
            for comment in comment_rows.scalars():
                comments_by_image[comment.image_id].append(_to_comment(comment))

            like_rows = await session.execute(
                select(LikeRecord.image_id, LikeRecord.user_id).where(LikeRecord.image_id.in_(ids))
            )
            likers_by_image: dict[str, list[str]] = defaultdict(list)
            for image_id, user_id in like_rows:
                likers_by_image[image_id].append(user_id)

        logger.info(f"Primary store returned {len(records)} artifacts")
        return [
            _to_artifact(record, comments_by_image[record.id], likers_by_image[record.id])
            for record in records
        ]

    async def get_artifact(self, image_id: str) -> Artifact | None:
        async with self._session() as session:
            record = await session.get(SharedImageRecord, image_id)
            return _to_artifact(record) if record else None

    async def insert_artifact(self, artifact: Artifact) -> Artifact:
        async with self._session() as session:
            record = SharedImageRecord(
                id=artifact.id,
                user_id=artifact.user_id,
                user_name=artifact.user_name,
                image_url=artifact.image_url,
                prompt=artifact.prompt,
                aspect_ratio=artifact.aspect_ratio,
                rendering_style=artifact.rendering_style,
                gender=artifact.gender,
                age=artifact.age,
                category=artifact.category,
                like_count=0,
                show_on_community=True,
                original_generation_id=artifact.source_id,
                created_at=artifact.created_at,
            )
            session.add(record)
            await session.flush()
            stored = _to_artifact(record)
        logger.info(f"Inserted artifact {stored.id} into primary store")
        return stored

    async def toggle_like(self, image_id: str, user_id: str) -> tuple[bool, int]:
        """Add or remove the (image, user) like row and refresh the count.

        Returns:
            Tuple of ``(liked, like_count)`` after the toggle.

        Raises:
            ArtifactNotFoundError: The image is not in this store.
        """
        async with self._session() as session:
            record = await session.get(SharedImageRecord, image_id)
            if record is None:
                raise ArtifactNotFoundError(image_id)

            existing = await session.execute(
                select(LikeRecord).where(LikeRecord.image_id == image_id, LikeRecord.user_id == user_id)
            )
            like = existing.scalars().first()
            if like is not None:
                await session.delete(like)
                liked = False
            else:
                session.add(LikeRecord(image_id=image_id, user_id=user_id))
                liked = True
            await session.flush()

            count = await session.scalar(
                select(func.count()).select_from(LikeRecord).where(LikeRecord.image_id == image_id)
            )
            record.like_count = count or 0
        return liked, count or 0

    async def add_comment(self, comment: Comment) -> Comment:
        async with self._session() as session:
            if await session.get(SharedImageRecord, comment.image_id) is None:
                raise ArtifactNotFoundError(comment.image_id)
            session.add(
                CommentRecord(
                    id=comment.id,
                    image_id=comment.image_id,
                    user_id=comment.user_id,
                    user_name=comment.user_name,
                    content=comment.text,
                    created_at=comment.created_at,
                )
            )
        return comment

    async def delete_comment(self, image_id: str, comment_id: str, requester_id: str) -> None:
        async with self._session() as session:
            image = await session.get(SharedImageRecord, image_id)
            if image is None:
                raise ArtifactNotFoundError(image_id)
            comment = await session.get(CommentRecord, comment_id)
            if comment is None or comment.image_id != image_id:
                raise CommentNotFoundError(comment_id)
            if requester_id not in (comment.user_id, image.user_id):
                raise PermissionDeniedError("Only the author or the image owner may delete a comment")
            await session.delete(comment)

    async def delete_artifact(self, image_id: str, requester_id: str) -> bool:
        """Delete an artifact with its comments and likes.

        Returns:
            ``True`` if removed, ``False`` if the store did not hold it.
        """
        async with self._session() as session:
            record = await session.get(SharedImageRecord, image_id)
            if record is None:
                return False
            if record.user_id != requester_id:
                raise PermissionDeniedError("Only the owner may delete an image")
            await session.execute(delete(CommentRecord).where(CommentRecord.image_id == image_id))
            await session.execute(delete(LikeRecord).where(LikeRecord.image_id == image_id))
            await session.delete(record)
        logger.info(f"Deleted artifact {image_id} from primary store")
        return True

    async def is_shared(self, source_id: str) -> bool:
        async with self._session() as session:
            found = await session.scalar(
                select(SharedImageRecord.id)
                .where(SharedImageRecord.original_generation_id == source_id)
                .limit(1)
            )
            return found is not None

    async def fetch_artifacts(self, image_ids: list[str] | None = None) -> list[Artifact]:
        """Return stored artifacts without comments or likes.

        Args:
            image_ids: Restrict to these ids; every row when ``None``.
        """
        query = select(SharedImageRecord).order_by(SharedImageRecord.created_at.desc())
        if image_ids is not None:
            query = query.where(SharedImageRecord.id.in_(image_ids))
        async with self._session() as session:
            result = await session.execute(query)
            return [_to_artifact(record) for record in result.scalars()]

    async def update_categories(self, categories: dict[str, str]) -> int:
        """Set ``category`` per image id; returns the number of rows updated."""
        updated = 0
        async with self._session() as session:
            for image_id, category in categories.items():
                result = await session.execute(
                    update(SharedImageRecord)
                    .where(SharedImageRecord.id == image_id)
                    .values(category=category)
                )
                updated += result.rowcount or 0
        logger.info(f"Updated {updated} categories in primary store")
        return updated
