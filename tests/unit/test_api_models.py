"""Tests for promptshare.api.models - Pydantic request models.

Tests cover:
- Required field validation.
- Default values for optional fields.
- Length constraints.
- Conversion of a share request into an ArtifactDraft.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from promptshare.api.models import (
    ClassifyRequest,
    CommentRequest,
    LikeRequest,
    ReclassifyRequest,
    ShareRequest,
)
from promptshare.core.models import ArtifactDraft


@pytest.mark.unit
class TestShareRequest:
    """Test ShareRequest Pydantic model."""

    def test_valid_minimal_request(self):
        req = ShareRequest(user_id="u1", image_url="https://cdn.example.com/a.png")
        assert req.aspect_ratio == "1:1"
        assert req.category is None
        assert req.user_name is None

    def test_missing_image_url_raises(self):
        with pytest.raises(ValidationError):
            ShareRequest(user_id="u1")

    def test_empty_user_id_raises(self):
        with pytest.raises(ValidationError):
            ShareRequest(user_id="", image_url="https://cdn.example.com/a.png")

    def test_overlong_category_raises(self):
        with pytest.raises(ValidationError):
            ShareRequest(user_id="u1", image_url="https://x/a.png", category="x" * 51)

    def test_to_draft(self):
        """Every field should carry over to the draft."""
        req = ShareRequest(
            user_id="u1",
            image_url="https://x/a.png",
            prompt="a red fox",
            rendering_style="realistic_image",
            source_id="gen-1",
            gender="female",
            age="adult",
        )
        draft = req.to_draft()
        assert isinstance(draft, ArtifactDraft)
        assert draft.prompt == "a red fox"
        assert draft.source_id == "gen-1"
        assert draft.gender == "female"


@pytest.mark.unit
class TestLikeRequest:
    """Test LikeRequest Pydantic model."""

    def test_valid(self):
        req = LikeRequest(image_id="img", user_id="u1")
        assert req.image_id == "img"

    def test_missing_user_raises(self):
        with pytest.raises(ValidationError):
            LikeRequest(image_id="img")


@pytest.mark.unit
class TestCommentRequest:
    """Test CommentRequest Pydantic model."""

    def test_user_name_optional(self):
        req = CommentRequest(image_id="img", user_id="u1", text="nice")
        assert req.user_name is None

    def test_empty_text_raises(self):
        with pytest.raises(ValidationError):
            CommentRequest(image_id="img", user_id="u1", text="")

    def test_overlong_text_raises(self):
        with pytest.raises(ValidationError):
            CommentRequest(image_id="img", user_id="u1", text="x" * 1001)


@pytest.mark.unit
class TestClassifyRequest:
    """Test ClassifyRequest Pydantic model."""

    def test_all_fields_optional(self):
        req = ClassifyRequest()
        assert req.prompt == ""
        assert req.rendering_style == ""


@pytest.mark.unit
class TestReclassifyRequest:
    """Test ReclassifyRequest Pydantic model."""

    def test_ids_optional(self):
        assert ReclassifyRequest().image_ids is None

    def test_ids_list(self):
        assert ReclassifyRequest(image_ids=["a", "b"]).image_ids == ["a", "b"]

    def test_too_many_ids_raises(self):
        with pytest.raises(ValidationError):
            ReclassifyRequest(image_ids=[str(i) for i in range(501)])
