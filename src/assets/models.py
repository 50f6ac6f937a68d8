"""Data models for the asset manifest and upload pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

ImageFormat = Literal["jpeg", "png", "webp", "gif", "svg", "avif"]


class AssetStatus(str, Enum):
    """Lifecycle of one image within a publish attempt."""
    PENDING = "pending"
    DOWNLOADING = "downloading"
    READY = "ready"
    UPLOADED = "uploaded"
    FAILED = "failed"


class AssetRef(BaseModel):
    """An asset already known upstream (pasted, uploaded or collected)."""
    id: str
    url: str = ""
    type: Literal["image", "video", "file"] = "image"
    alt: Optional[str] = None
    title: Optional[str] = None
    size: int = 0
    mime_type: Optional[str] = None
    data: Optional[bytes] = None  # inline payload
    data_url: Optional[str] = None  # inline payload as a data: URL


class ImageMetadata(BaseModel):
    format: ImageFormat = "jpeg"
    size: int = 0
    alt: Optional[str] = None
    title: Optional[str] = None
    data_url: Optional[str] = None
    mime_type: Optional[str] = None


class ImageAssetEntry(BaseModel):
    """One de-duplicated image reference of a document."""
    id: str
    original_url: str
    proxy_url: Optional[str] = None
    metadata: ImageMetadata = Field(default_factory=ImageMetadata)
    status: AssetStatus = AssetStatus.PENDING
    uploaded_urls: dict[str, str] = Field(default_factory=dict)
    error: Optional[str] = None


class AssetManifest(BaseModel):
    """Ordered, de-duplicated image list of a document."""
    images: list[ImageAssetEntry] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.images)

    def get(self, asset_id: str) -> ImageAssetEntry | None:
        return next((img for img in self.images if img.id == asset_id), None)

    def find_by_url(self, original_url: str) -> ImageAssetEntry | None:
        return next(
            (img for img in self.images if img.original_url == original_url),
            None,
        )

    def with_uploads(self, platform: str, url_mapping: dict[str, str]) -> AssetManifest:
        """Return a copy recording ``url_mapping`` as uploads for ``platform``.

        Entries absent from the mapping are copied unchanged.
        """
        images = []
        for img in self.images:
            new_url = url_mapping.get(img.original_url)
            if new_url:
                img = img.model_copy(update={
                    "uploaded_urls": {**img.uploaded_urls, platform: new_url},
                    "status": AssetStatus.UPLOADED,
                })
            images.append(img)
        return AssetManifest(images=images)


class RateLimit(BaseModel):
    """Upload pacing declared by a platform."""
    rpm: Optional[int] = Field(default=None, gt=0)
    concurrent: Optional[int] = Field(default=None, gt=0)


class SessionContext(BaseModel):
    """Browser session state of the logged-in target site.

    CSRF tokens are read from here; ``cookies`` are also sent with uploads.
    """
    cookies: dict[str, str] = Field(default_factory=dict)
    page_meta: dict[str, str] = Field(default_factory=dict)
    local_storage: dict[str, str] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)


@dataclass
class FetchedImage:
    """Bytes of one image, ready to be normalized and uploaded."""
    original_url: str
    data: bytes
    mime_type: str


@dataclass
class UploadStats:
    total: int = 0
    success: int = 0
    failed: int = 0


@dataclass
class UploadOutcome:
    """Result of one pipeline run for one platform.

    ``url_mapping`` is keyed by original URL. An asset missing from it keeps
    its original URL.
    """
    url_mapping: dict[str, str] = field(default_factory=dict)
    stats: UploadStats = field(default_factory=UploadStats)


@dataclass
class ImageUploadResult:
    """Result of a single image upload."""
    original_url: str
    new_url: str
    success: bool
    error: str = ""


@dataclass
class UploadProgress:
    total: int
    completed: int
    stage: Literal["downloading", "uploading", "complete"]
    current: str = ""
