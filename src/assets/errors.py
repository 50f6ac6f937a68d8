"""Per-asset failures.

None of these escape the pipeline: they are caught per image, logged, and
counted in ``UploadStats.failed``.
"""

from __future__ import annotations


class AssetError(Exception):
    """Base class for image reference, fetch and upload failures."""

    def __init__(self, message: str, url: str = "", status: int | None = None):
        super().__init__(message)
        self.url = url
        self.status = status


class ManifestError(AssetError):
    """An image reference could not be turned into a manifest entry."""


class FetchError(AssetError):
    """All referrer candidates exhausted, or a non-retryable status."""


class UploadError(AssetError):
    """Non-2xx upload response, or no URL could be extracted from it."""
