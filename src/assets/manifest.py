"""Asset manifest builder.

Collects every image a document references, in order of first appearance:

    1. Markdown image syntax ``![alt](url "title")``
    2. Inline HTML ``<img>`` tags (some editors emit HTML inside Markdown)
    3. Explicit assets supplied upstream (images not referenced in the body)

Usage:
    from src.assets.manifest import build_asset_manifest

    manifest = build_asset_manifest(post.body_md, post.assets)
    for image in manifest.images:
        print(image.id, image.original_url)
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from bs4 import BeautifulSoup

from src.common.logging import setup_logging

from .data_url import encode_data_url
from .errors import ManifestError
from .models import AssetManifest, AssetRef, ImageAssetEntry, ImageMetadata

logger = setup_logging(module_name="assets.manifest")

LOCAL_SCHEME = "local://"

_MD_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
_QUOTE_RE = re.compile(r"[\"']")
_QUOTED_TITLE_RE = re.compile(r"^[\"']([\s\S]*)[\"']$")
_WHITESPACE_RE = re.compile(r"\s+")

_EXTENSION_FORMATS = {
    "jpg": "jpeg",
    "jpeg": "jpeg",
    "png": "png",
    "webp": "webp",
    "gif": "gif",
    "svg": "svg",
    "avif": "avif",
}


def guess_image_format(url: str) -> str:
    """Guess the image format from the URL's file extension (``jpeg`` default)."""
    ext = url.rsplit(".", 1)[-1].lower().split("?")[0]
    return _EXTENSION_FORMATS.get(ext, "jpeg")


def is_processable_image_url(url: str) -> bool:
    """Whether a reference should enter the manifest.

    ``data:`` URIs are already embedded and relative paths cannot be
    fetched, so only ``http(s)://`` and ``local://`` qualify.
    """
    if not url or url.startswith("data:"):
        return False
    if url.startswith(LOCAL_SCHEME):
        return True
    return url.startswith(("http://", "https://"))


def parse_markdown_image_destination(raw_inner: str) -> tuple[str, Optional[str]]:
    """Split the parenthesised part of a Markdown image into ``(url, title)``.

    Handles ``<url>``, ``url "title"`` and ``url 'title'``. Whitespace inside
    the URL is removed, so a destination broken by an editor
    (``https://x.com/a. jpg``) yields ``https://x.com/a.jpg``.
    """
    inner = (raw_inner or "").strip()

    title_part = ""
    quote = _QUOTE_RE.search(inner)
    if quote and quote.start() > 0:
        title_part = inner[quote.start():].strip()
        inner = inner[:quote.start()].rstrip()

    if inner.startswith("<") and inner.endswith(">"):
        inner = inner[1:-1]

    url = _WHITESPACE_RE.sub("", inner)

    title = None
    if title_part:
        m = _QUOTED_TITLE_RE.match(title_part)
        title = (m.group(1) if m else title_part).strip() or None

    return url, title


class _LocalPayloadLookup:
    """Resolve ``local://<id>`` references to inline data URLs."""

    def __init__(self, assets: Iterable[AssetRef]):
        self._by_url: dict[str, str] = {}
        self._by_id: dict[str, str] = {}
        for asset in assets:
            if asset.type != "image":
                continue
            payload = asset.data_url
            if not payload and asset.data:
                payload = encode_data_url(asset.data, asset.mime_type or "image/png")
            if not payload:
                continue
            if asset.url:
                self._by_url[asset.url] = payload
            if asset.id:
                self._by_id[asset.id] = payload
                self._by_url[f"{LOCAL_SCHEME}{asset.id}"] = payload

    def resolve(self, url: str) -> Optional[str]:
        if not url.startswith(LOCAL_SCHEME):
            return None
        asset_id = url[len(LOCAL_SCHEME):]
        return self._by_url.get(url) or (self._by_id.get(asset_id) if asset_id else None)


class _ManifestBuilder:
    def __init__(self, assets: list[AssetRef]):
        self.images: list[ImageAssetEntry] = []
        self._seen: set[str] = set()
        self._lookup = _LocalPayloadLookup(assets)

    def add(
        self,
        raw_url: str,
        alt: Optional[str] = None,
        title: Optional[str] = None,
        size: int = 0,
        mime_type: Optional[str] = None,
    ) -> None:
        try:
            url = self._normalize(raw_url)
        except ManifestError as e:
            logger.debug("Skipping image reference %r: %s", raw_url, e)
            return
        if url in self._seen:
            return
        self._seen.add(url)

        data_url = self._lookup.resolve(url)
        self.images.append(ImageAssetEntry(
            id=f"img-{len(self.images)}",
            original_url=url,
            metadata=ImageMetadata(
                format=guess_image_format(url),
                size=size or 0,
                alt=alt or None,
                title=title or None,
                data_url=data_url,
                mime_type=mime_type,
            ),
        ))

    @staticmethod
    def _normalize(raw_url: str) -> str:
        url = _WHITESPACE_RE.sub("", raw_url or "")
        if not url:
            raise ManifestError("empty URL")
        if not is_processable_image_url(url):
            raise ManifestError("not a fetchable image URL", url=url)
        return url


def _scan_markdown(body_md: str, builder: _ManifestBuilder) -> None:
    for match in _MD_IMAGE_RE.finditer(body_md):
        url, title = parse_markdown_image_destination(match.group(2))
        builder.add(url, alt=match.group(1), title=title)


def _scan_html(body_md: str, builder: _ManifestBuilder) -> None:
    if "<img" not in body_md.lower():
        return
    soup = BeautifulSoup(body_md, "lxml")
    for tag in soup.find_all("img"):
        src = (tag.get("src") or "").strip()
        if src:
            builder.add(src, alt=tag.get("alt"), title=tag.get("title"))


def build_asset_manifest(
    body_md: Optional[str],
    assets: Optional[Iterable[AssetRef]] = None,
) -> AssetManifest:
    """Build the de-duplicated image manifest of a document.

    Args:
        body_md: Markdown body (may contain inline HTML).
        assets: Explicit asset list; also used to resolve ``local://``
            references to inline payloads.

    Returns:
        AssetManifest with ids ``img-0``, ``img-1``, ... in order of first
        appearance. Each normalized URL appears once.
    """
    asset_list = list(assets or [])
    builder = _ManifestBuilder(asset_list)

    if body_md:
        _scan_markdown(body_md, builder)
        _scan_html(body_md, builder)

    for asset in asset_list:
        if asset.type != "image" or not asset.url:
            continue
        builder.add(
            asset.url,
            alt=asset.alt,
            title=asset.title,
            size=asset.size,
            mime_type=asset.mime_type,
        )

    logger.debug("Built manifest with %d image(s)", len(builder.images))
    return AssetManifest(images=builder.images)
