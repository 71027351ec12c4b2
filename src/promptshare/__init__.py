"""promptshare - community gallery backend for shared prompt-to-image artifacts."""

__version__ = "0.1.0"

from promptshare.core.categories import classify
from promptshare.core.config import GalleryConfig, config

__all__ = [
    "GalleryConfig",
    "classify",
    "config",
]
