"""Tree transforms.

All structural clean-up happens on the tree, never with regexes over the
rendered string. Every transform returns a new tree; the input is untouched.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Mapping, Optional

from .nodes import (
    ImageBlockNode,
    ImageInlineNode,
    ParagraphNode,
    RootNode,
    TextNode,
)

# Returning None from a visitor drops the node; returning a node replaces it.
NodeVisitor = Callable[[Any], Optional[Any]]

_DROP = object()


def _visit(node: Any, visitor: NodeVisitor) -> Any:
    result = visitor(node)
    if result is None:
        return _DROP
    children = getattr(result, "children", None)
    if isinstance(children, tuple) and children:
        new_children = tuple(
            child
            for child in (_visit(c, visitor) for c in children)
            if child is not _DROP
        )
        if new_children != children:
            result = replace(result, children=new_children)
    return result


def visit_tree(tree: RootNode, visitor: NodeVisitor) -> RootNode:
    """Walk every node depth-first, rebuilding only the changed branches.

    The visitor sees a node before its children and may return the node
    itself, a replacement, or None to remove it.
    """
    children = tuple(
        child
        for child in (_visit(c, visitor) for c in tree.children)
        if child is not _DROP
    )
    return RootNode(children=children)


def _plain_text(nodes: tuple) -> str:
    parts = []
    for node in nodes:
        if isinstance(node, TextNode):
            parts.append(node.value)
        elif isinstance(getattr(node, "children", None), tuple):
            parts.append(_plain_text(node.children))
    return "".join(parts)


def clean_tree(tree: RootNode) -> RootNode:
    """Remove empty text nodes and paragraphs with no visible text."""

    def visitor(node: Any) -> Optional[Any]:
        if isinstance(node, TextNode) and not node.value:
            return None
        if isinstance(node, ParagraphNode):
            if not node.children:
                return None
            if all(isinstance(c, TextNode) for c in node.children):
                if not _plain_text(node.children).strip():
                    return None
        return node

    return visit_tree(tree, visitor)


def remove_toc(tree: RootNode) -> RootNode:
    """Drop TOC nodes and paragraphs consisting only of a TOC marker."""

    def visitor(node: Any) -> Optional[Any]:
        if node.type == "toc":
            return None
        if isinstance(node, ParagraphNode) and len(node.children) == 1:
            only = node.children[0]
            if isinstance(only, TextNode) and only.value.strip() in ("[TOC]", "[[toc]]"):
                return None
        return node

    return visit_tree(tree, visitor)


def extract_image_asset_ids(tree: RootNode) -> list[str]:
    """Asset ids of every block and inline image, in document order."""
    ids: list[str] = []

    def visitor(node: Any) -> Any:
        if isinstance(node, (ImageBlockNode, ImageInlineNode)):
            ids.append(node.asset_id)
        return node

    visit_tree(tree, visitor)
    return ids


def rewrite_image_urls(tree: RootNode, url_map: Mapping[str, str]) -> RootNode:
    """Return a tree whose images carry new ``original_url`` values.

    ``url_map`` is keyed by asset id.
    """

    def visitor(node: Any) -> Any:
        if isinstance(node, (ImageBlockNode, ImageInlineNode)):
            new_url = url_map.get(node.asset_id)
            if new_url:
                return replace(node, original_url=new_url)
        return node

    return visit_tree(tree, visitor)
