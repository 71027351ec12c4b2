"""Gallery orchestration: tiered reads, mutations and the cached service."""

from promptshare.gallery.service import GalleryService, ReadResult, build_gallery_service

__all__ = ["GalleryService", "ReadResult", "build_gallery_service"]
