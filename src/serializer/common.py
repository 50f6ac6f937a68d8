"""Helpers shared by the Markdown and HTML renderers."""

from __future__ import annotations

import html
from typing import Optional

from src.common.logging import setup_logging

from .options import SerializeOptions

logger = setup_logging(module_name="serializer")

_reported_gaps: set[str] = set()


def report_gap(key: str, message: str) -> None:
    """Log a serialization fallback once per process."""
    if key in _reported_gaps:
        return
    _reported_gaps.add(key)
    logger.debug(message)


def resolve_image_url(
    asset_id: str,
    original_url: Optional[str],
    options: SerializeOptions,
) -> str:
    """Final URL of an image for this target.

    Precedence:
        1. ``image_url_map`` entry (by asset id, then by original URL)
        2. manifest entry's uploaded URL for ``options.platform``
        3. manifest entry's proxy URL
        4. manifest entry's original URL, then the node's own
        5. empty string
    """
    assets = options.assets
    asset = None
    if assets is not None:
        asset = assets.get(asset_id) if asset_id else None
        if original_url and (asset is None or asset.original_url != original_url):
            # Manifest ids are positional, so the URL decides on a mismatch
            asset = assets.find_by_url(original_url) or asset

    url_map = options.image_url_map
    if url_map:
        keys = [asset_id, original_url]
        if asset is not None:
            keys.append(asset.original_url)
        for key in keys:
            if key and url_map.get(key):
                return url_map[key]

    if asset is not None:
        if options.platform and asset.uploaded_urls.get(options.platform):
            return asset.uploaded_urls[options.platform]
        if asset.proxy_url:
            return asset.proxy_url
        if asset.original_url:
            return asset.original_url

    return original_url or ""


def escape_markdown(text: str) -> str:
    """Escape only the characters that would change Markdown structure."""
    return (
        text.replace("\\", "\\\\")
        .replace("*", "\\*")
        .replace("_", "\\_")
        .replace("[", "\\[")
        .replace("]", "\\]")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
    )


def escape_html(text: Optional[str]) -> str:
    return html.escape(text or "", quote=True)
