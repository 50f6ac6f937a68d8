"""Data models for the publisher module."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable

from src.assets.models import AssetRef, RateLimit, UploadStats
from src.assets.strategies import DomPasteConfig
from src.document.nodes import RootNode


class ContentFormat(str, Enum):
    """Body format a target accepts."""
    MARKDOWN = "markdown"
    HTML = "html"


@dataclass
class CanonicalPost:
    """One article as authored, before any target-specific processing."""
    id: str
    title: str
    body_md: str = ""
    summary: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    cover: Optional[AssetRef] = None
    assets: list[AssetRef] = field(default_factory=list)
    tree: Optional[RootNode] = None  # parsed upstream when available


@dataclass
class PlatformCapabilities:
    """What a target can render and how fast it may be driven."""
    supports_markdown: bool = True
    supports_html: bool = False
    supports_latex: bool = False
    external_images: bool = True
    rate_limit: Optional[RateLimit] = None


@dataclass
class PlatformPayload:
    """Publish-ready content for one target."""
    title: str
    content_markdown: Optional[str] = None
    content_html: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    summary: Optional[str] = None
    cover: Optional[str] = None
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class PublishResult:
    """Result of publishing to one target."""
    success: bool
    platform: str
    url: str = ""
    remote_id: str = ""
    draft_id: str = ""
    edit_url: str = ""
    error: str = ""
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class PreparedPost:
    """Payload plus image upload bookkeeping for one target."""
    platform: str
    payload: PlatformPayload
    stats: UploadStats = field(default_factory=UploadStats)
    url_mapping: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


@runtime_checkable
class TargetAdapter(Protocol):
    """Per-site automation that submits a payload.

    ``paste_image`` is only called for paste-upload targets: it receives the
    image bytes, MIME type and editor config and returns the hosted URL, or
    None when the editor produced none.
    """

    platform_id: str
    capabilities: PlatformCapabilities

    async def publish(self, payload: PlatformPayload) -> PublishResult: ...

    async def paste_image(
        self, data: bytes, mime_type: str, config: DomPasteConfig,
    ) -> Optional[str]: ...
