"""Build a canonical tree from its JSON form.

The upstream Markdown parser hands trees over as plain dicts with camelCase
keys (``assetId``, ``hasRowspan`` ...). Snake_case keys are accepted too.
Unrecognized ``type`` tags become :class:`UnknownNode` instead of raising.
"""

from __future__ import annotations

from typing import Any, Callable

from .nodes import (
    BlockquoteNode,
    BreakNode,
    CodeBlockNode,
    DeleteNode,
    EmbedBlockNode,
    EmphasisNode,
    FootnoteDefNode,
    FootnoteRefNode,
    FrontmatterNode,
    HeadingNode,
    HtmlBlockNode,
    HtmlInlineNode,
    ImageBlockNode,
    ImageInlineNode,
    InlineCodeNode,
    LinkNode,
    ListItemNode,
    ListNode,
    MathBlockNode,
    MathInlineNode,
    MermaidBlockNode,
    ParagraphNode,
    RootNode,
    StrongNode,
    TableCellNode,
    TableNode,
    TableRowNode,
    TextNode,
    ThematicBreakNode,
    TocNode,
    UnknownNode,
)


def _get(raw: dict, camel: str, default: Any = None) -> Any:
    """Read a key in camelCase or snake_case form."""
    if camel in raw:
        return raw[camel]
    snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in camel)
    return raw.get(snake, default)


def _children(raw: dict, key: str = "children") -> tuple:
    return tuple(node_from_dict(child) for child in raw.get(key) or ())


def _text_value(raw: dict) -> str:
    return str(raw.get("value") or "")


_BUILDERS: dict[str, Callable[[dict], Any]] = {
    # Inline
    "text": lambda r: TextNode(value=_text_value(r)),
    "emphasis": lambda r: EmphasisNode(children=_children(r)),
    "strong": lambda r: StrongNode(children=_children(r)),
    "delete": lambda r: DeleteNode(children=_children(r)),
    "inlineCode": lambda r: InlineCodeNode(value=_text_value(r)),
    "link": lambda r: LinkNode(
        url=r.get("url") or "", title=r.get("title"), children=_children(r)
    ),
    "imageInline": lambda r: ImageInlineNode(
        asset_id=_get(r, "assetId", ""),
        original_url=_get(r, "originalUrl"),
        alt=r.get("alt"),
        title=r.get("title"),
    ),
    "mathInline": lambda r: MathInlineNode(tex=r.get("tex") or ""),
    "break": lambda r: BreakNode(),
    "htmlInline": lambda r: HtmlInlineNode(value=_text_value(r)),
    "footnoteRef": lambda r: FootnoteRefNode(
        identifier=r.get("identifier") or "", label=r.get("label")
    ),
    # Block
    "paragraph": lambda r: ParagraphNode(children=_children(r)),
    "heading": lambda r: HeadingNode(
        depth=int(r.get("depth") or 1), children=_children(r)
    ),
    "blockquote": lambda r: BlockquoteNode(children=_children(r)),
    "list": lambda r: ListNode(
        ordered=bool(r.get("ordered")),
        start=int(r["start"]) if r.get("start") is not None else 1,
        children=_children(r),
    ),
    "listItem": lambda r: ListItemNode(
        checked=r.get("checked"), children=_children(r)
    ),
    "codeBlock": lambda r: CodeBlockNode(
        value=_text_value(r), lang=r.get("lang"), meta=r.get("meta")
    ),
    "mermaidBlock": lambda r: MermaidBlockNode(
        code=r.get("code") or "", diagram_type=_get(r, "diagramType")
    ),
    "mathBlock": lambda r: MathBlockNode(tex=r.get("tex") or ""),
    "thematicBreak": lambda r: ThematicBreakNode(),
    "imageBlock": lambda r: ImageBlockNode(
        asset_id=_get(r, "assetId", ""),
        original_url=_get(r, "originalUrl"),
        alt=r.get("alt"),
        title=r.get("title"),
        caption=_children(r, "caption"),
    ),
    "table": lambda r: TableNode(
        align=tuple(r.get("align") or ()),
        has_rowspan=bool(_get(r, "hasRowspan", False)),
        has_colspan=bool(_get(r, "hasColspan", False)),
        caption=_children(r, "caption"),
        children=_children(r),
    ),
    "tableRow": lambda r: TableRowNode(children=_children(r)),
    "tableCell": lambda r: TableCellNode(
        header=bool(r.get("header")),
        rowspan=r.get("rowspan"),
        colspan=r.get("colspan"),
        align=r.get("align"),
        children=_children(r),
    ),
    "htmlBlock": lambda r: HtmlBlockNode(value=_text_value(r)),
    "embedBlock": lambda r: EmbedBlockNode(
        url=r.get("url"),
        html=r.get("html"),
        provider=r.get("provider"),
        embed_type=_get(r, "embedType", "other") or "other",
    ),
    "footnoteDef": lambda r: FootnoteDefNode(
        identifier=r.get("identifier") or "",
        label=r.get("label"),
        children=_children(r),
    ),
    "toc": lambda r: TocNode(),
    "frontmatter": lambda r: FrontmatterNode(value=_text_value(r)),
}


def node_from_dict(raw: Any) -> Any:
    """Convert one JSON node (and its subtree) into a frozen node.

    Anything that is not an object (null, bare strings, numbers) becomes
    an :class:`UnknownNode` holding the raw value.
    """
    if not isinstance(raw, dict):
        return UnknownNode(data={"value": raw})
    node_type = str(raw.get("type") or "")
    builder = _BUILDERS.get(node_type)
    if builder is None:
        return UnknownNode(type=node_type or "unknown", data=dict(raw))
    return builder(raw)


def tree_from_dict(raw: dict) -> RootNode:
    """Convert a JSON ``root`` node into a :class:`RootNode`."""
    return RootNode(children=_children(raw))
