"""Rewrite image references inside raw Markdown/HTML content.

Used when a post has no canonical tree: the body string itself is patched
with the original→final URL mapping produced by the upload pipeline.
"""

from __future__ import annotations

import html
import re
from typing import Mapping, Optional

from .manifest import parse_markdown_image_destination

_MD_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
_QUOTE_RE = re.compile(r"[\"']")
_WHITESPACE_RE = re.compile(r"\s+")
_HTML_IMG_SRC_RE = re.compile(
    r"<img\b([^>]*?)\bsrc=([\"'])([^\"']*)\2([^>]*)>",
    re.IGNORECASE,
)


def is_local_image_url(url: Optional[str]) -> bool:
    """True for images that only exist on the author's machine.

    ``blob:``, ``data:image`` and ``local://`` URLs qualify; ``http(s)``
    URLs and empty values do not.
    """
    if not url or not isinstance(url, str):
        return False
    return url.startswith(("blob:", "data:image", "local://"))


def _title_suffix(raw_inner: str) -> str:
    inner = raw_inner.strip()
    quote = _QUOTE_RE.search(inner)
    if quote and quote.start() > 0:
        return " " + inner[quote.start():].strip()
    return ""


def normalize_markdown_image_destinations(markdown: str) -> str:
    """Repair image destinations broken by whitespace or angle brackets.

    The title (if any) is kept verbatim, including its inner spaces.
    """
    if not markdown:
        return markdown

    def _fix(m: re.Match) -> str:
        url, _ = parse_markdown_image_destination(m.group(2))
        return f"![{m.group(1)}]({url}{_title_suffix(m.group(2))})"

    return _MD_IMAGE_RE.sub(_fix, markdown)


def replace_image_urls(content: str, url_mapping: Mapping[str, str]) -> str:
    """Replace image URLs in Markdown image syntax and ``<img src>`` tags.

    Args:
        content: Markdown (optionally with inline HTML) or HTML.
        url_mapping: original URL → new URL. Unmapped images are untouched.

    Returns:
        The rewritten content. Alt text and titles are preserved.
    """
    result = normalize_markdown_image_destinations(content)
    if not url_mapping or not result:
        return result

    def _md(m: re.Match) -> str:
        url, _ = parse_markdown_image_destination(m.group(2))
        new_url = url_mapping.get(url)
        if not new_url:
            return m.group(0)
        return f"![{m.group(1)}]({new_url}{_title_suffix(m.group(2))})"

    def _html(m: re.Match) -> str:
        # Same key the manifest builds: entities decoded, whitespace removed
        key = _WHITESPACE_RE.sub("", html.unescape(m.group(3)))
        new_url = url_mapping.get(key)
        if not new_url:
            return m.group(0)
        return f'<img{m.group(1)}src="{html.escape(new_url)}"{m.group(4)}>'

    result = _MD_IMAGE_RE.sub(_md, result)
    return _HTML_IMG_SRC_RE.sub(_html, result)
