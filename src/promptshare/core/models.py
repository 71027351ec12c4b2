"""Domain models shared by every tier of the gallery.

The same :class:`Artifact` shape is produced by the primary store, the SQLite
mirror and the JSON file store, so the read path never has to care which tier
answered.  Models are pydantic so the file store can persist them with
``model_dump(mode="json")`` and the API can return them directly.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

DEFAULT_USER_NAME = "User"
DEFAULT_COMMENTER_NAME = "Anonymous User"


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return str(uuid.uuid4())


class Comment(BaseModel):
    """A comment attached to exactly one artifact."""

    id: str = Field(default_factory=new_id)
    image_id: str
    user_id: str
    user_name: str = DEFAULT_COMMENTER_NAME
    text: str
    created_at: datetime = Field(default_factory=utc_now)


class Artifact(BaseModel):
    """A shared image as it appears in the public gallery.

    Attributes:
        id: Opaque identifier of the shared image.
        user_id: Owner of the image.
        user_name: Display name of the owner.
        image_url: Already-resolved URL or storage path of the image.
        prompt: Free-text description the image was generated from.
        rendering_style: Style label chosen at generation time.
        aspect_ratio: Aspect-ratio tag such as ``"1:1"``.
        category: Topical category; ``None`` until stored or inferred.
        likes: Like count, never negative.
        liked_by: Users who liked the image, deduplicated, when known.
        comments: Comments ordered oldest first.
        created_at: Creation time (UTC).
        source_id: Private generation this image was shared from, if any.
        gender: Subject gender tag recorded at generation time.
        age: Subject age tag recorded at generation time.
    """

    id: str = Field(default_factory=new_id)
    user_id: str
    user_name: str = DEFAULT_USER_NAME
    image_url: str
    prompt: str = ""
    rendering_style: str = ""
    aspect_ratio: str = "1:1"
    category: str | None = None
    likes: int = Field(default=0, ge=0)
    liked_by: list[str] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    source_id: str | None = None
    gender: str = ""
    age: str = ""

    @field_validator("liked_by")
    @classmethod
    def dedupe_liked_by(cls, value: list[str]) -> list[str]:
        # dict.fromkeys keeps first-seen order
        return list(dict.fromkeys(value))


class ArtifactDraft(BaseModel):
    """Caller-supplied fields for a new shared artifact.

    ``category`` is the user's explicit choice; when omitted the Category
    Scorer infers one from ``prompt`` and ``rendering_style``.
    """

    user_id: str
    image_url: str
    user_name: str | None = None
    prompt: str = ""
    rendering_style: str = ""
    aspect_ratio: str = "1:1"
    category: str | None = None
    source_id: str | None = None
    gender: str = ""
    age: str = ""
