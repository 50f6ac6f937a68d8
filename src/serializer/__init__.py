# Serializer: canonical tree → Markdown or HTML
"""
Renders one canonical tree for one target under a SerializeOptions profile.

Usage:
    from src.serializer import SerializeOptions, serialize

    md = serialize(tree, SerializeOptions(platform="csdn", image_url_map=mapping))
    html = serialize(tree, SerializeOptions(format="html"))
"""

from __future__ import annotations

from src.document.nodes import RootNode

from .common import escape_html, escape_markdown, resolve_image_url
from .html import HtmlRenderer, serialize_to_html
from .markdown import MarkdownRenderer, serialize_to_markdown
from .options import SerializeOptions


def serialize(tree: RootNode, options: SerializeOptions | None = None) -> str:
    """Render ``tree`` in ``options.format``. Never raises for unknown nodes."""
    options = options or SerializeOptions()
    if options.format == "html":
        return serialize_to_html(tree, options)
    return serialize_to_markdown(tree, options)


__all__ = [
    "HtmlRenderer",
    "MarkdownRenderer",
    "SerializeOptions",
    "escape_html",
    "escape_markdown",
    "resolve_image_url",
    "serialize",
    "serialize_to_html",
    "serialize_to_markdown",
]
