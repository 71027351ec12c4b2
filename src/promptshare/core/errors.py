"""Exception hierarchy for the community gallery.

Store failures (:class:`StoreError`) are transient and recovered by the
gallery layer, which falls through to the next tier.  Everything else is a
caller-visible error and carries the HTTP status code the API layer should
answer with.
"""

from __future__ import annotations


class GalleryError(Exception):
    """Base class for all gallery errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StoreError(GalleryError):
    """A backing store failed to answer (query, connectivity or I/O error).

    Args:
        store: Name of the tier that failed (``primary``, ``mirror``, ``file``).
        message: Human readable description of the failure.
    """

    status_code = 503

    def __init__(self, store: str, message: str):
        super().__init__(f"{store} store: {message}")
        self.store = store


class StoreUnavailableError(StoreError):
    """The store is not configured for this deployment."""


class InvalidArtifactError(GalleryError):
    """A request is missing required fields or references."""

    status_code = 400


class ArtifactNotFoundError(GalleryError):
    """No tier knows the referenced artifact."""

    status_code = 404

    def __init__(self, image_id: str):
        super().__init__(f"Image not found: {image_id}")
        self.image_id = image_id


class CommentNotFoundError(GalleryError):
    """The referenced comment does not exist on the artifact."""

    status_code = 404

    def __init__(self, comment_id: str):
        super().__init__(f"Comment not found: {comment_id}")
        self.comment_id = comment_id


class PermissionDeniedError(GalleryError):
    """The requester may not perform this mutation."""

    status_code = 403


class MutationFailedError(GalleryError):
    """Every tier that could accept the mutation failed."""

    status_code = 500
