"""Pydantic request models for the promptshare API.

FastAPI uses these models for request validation (malformed payloads are
answered with 422) and OpenAPI documentation.  Business rules such as
"a comment needs non-blank text" are enforced again by the gallery layer,
which answers with 400.

Models
------
ShareRequest
    Payload for ``POST /api/share`` - publishes a generated image.
LikeRequest
    Payload for ``POST /api/likes`` - toggles a like.
CommentRequest
    Payload for ``POST /api/comments`` - adds a comment.
ClassifyRequest
    Payload for ``POST /api/categories/classify`` - category preview.
ReclassifyRequest
    Payload for ``POST /api/categories/reclassify`` - recompute stored categories.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from promptshare.core.models import ArtifactDraft


class ShareRequest(BaseModel):
    """Request body for the ``POST /api/share`` endpoint.

    Attributes:
        user_id: Id of the sharing user, resolved by the caller.
        image_url: Already-resolved URL of the image.
        user_name: Display name; ``"User"`` when omitted.
        prompt: Prompt the image was generated from.
        rendering_style: Style label chosen at generation time.
        aspect_ratio: Aspect ratio tag.
        category: Explicit category; inferred when omitted.
        source_id: Private generation the image comes from.
        gender: Subject gender tag from generation.
        age: Subject age tag from generation.
    """

    user_id: str = Field(..., min_length=1, description="Id of the sharing user.")
    image_url: str = Field(..., min_length=1, description="Resolved URL of the image.")
    user_name: str | None = Field(default=None, max_length=100, description="Display name.")
    prompt: str = Field(default="", max_length=4000, description="Generation prompt.")
    rendering_style: str = Field(default="", max_length=100, description="Style label.")
    aspect_ratio: str = Field(default="1:1", max_length=20, description="Aspect ratio tag.")
    category: str | None = Field(
        default=None,
        max_length=50,
        description="Explicit category; inferred from prompt and style when omitted.",
    )
    source_id: str | None = Field(default=None, description="Private generation id.")
    gender: str = Field(default="", max_length=50)
    age: str = Field(default="", max_length=50)

    def to_draft(self) -> ArtifactDraft:
        return ArtifactDraft(**self.model_dump())


class LikeRequest(BaseModel):
    """Request body for the ``POST /api/likes`` endpoint."""

    image_id: str = Field(..., min_length=1, description="Id of the shared image.")
    user_id: str = Field(..., min_length=1, description="Id of the liking user.")


class CommentRequest(BaseModel):
    """Request body for the ``POST /api/comments`` endpoint.

    Attributes:
        image_id: Id of the shared image.
        user_id: Id of the commenting user.
        text: Comment body.
        user_name: Display name; ``"Anonymous User"`` when omitted.
    """

    image_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1, max_length=1000, description="Comment body.")
    user_name: str | None = Field(default=None, max_length=100)


class ClassifyRequest(BaseModel):
    """Request body for the ``POST /api/categories/classify`` endpoint."""

    prompt: str = Field(default="", max_length=4000)
    rendering_style: str = Field(default="", max_length=100)


class ReclassifyRequest(BaseModel):
    """Request body for the ``POST /api/categories/reclassify`` endpoint.

    An omitted ``image_ids`` reclassifies every stored image.
    """

    image_ids: list[str] | None = Field(
        default=None,
        max_length=500,
        description="Ids of the shared images to reclassify.",
    )
