"""Canonical document tree.

Target-independent representation of an article. Images reference entries of
the asset manifest through ``asset_id``; ``original_url`` is only kept as a
fallback. Every node is frozen and children are tuples, so a tree can be
shared between concurrent serializations for different targets.

Each node class exposes its tag through ``node.type``. A node whose tag is not
part of this schema is carried as :class:`UnknownNode` and renders as nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal, Optional, Union

TableAlign = Optional[Literal["left", "center", "right"]]


# === Inline nodes ===


@dataclass(frozen=True)
class TextNode:
    type: ClassVar[str] = "text"
    value: str = ""


@dataclass(frozen=True)
class EmphasisNode:
    type: ClassVar[str] = "emphasis"
    children: tuple[InlineNode, ...] = ()


@dataclass(frozen=True)
class StrongNode:
    type: ClassVar[str] = "strong"
    children: tuple[InlineNode, ...] = ()


@dataclass(frozen=True)
class DeleteNode:
    type: ClassVar[str] = "delete"
    children: tuple[InlineNode, ...] = ()


@dataclass(frozen=True)
class InlineCodeNode:
    type: ClassVar[str] = "inlineCode"
    value: str = ""


@dataclass(frozen=True)
class LinkNode:
    type: ClassVar[str] = "link"
    url: str = ""
    title: Optional[str] = None
    children: tuple[InlineNode, ...] = ()


@dataclass(frozen=True)
class ImageInlineNode:
    type: ClassVar[str] = "imageInline"
    asset_id: str = ""
    original_url: Optional[str] = None
    alt: Optional[str] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class MathInlineNode:
    type: ClassVar[str] = "mathInline"
    tex: str = ""


@dataclass(frozen=True)
class BreakNode:
    type: ClassVar[str] = "break"


@dataclass(frozen=True)
class HtmlInlineNode:
    type: ClassVar[str] = "htmlInline"
    value: str = ""


@dataclass(frozen=True)
class FootnoteRefNode:
    type: ClassVar[str] = "footnoteRef"
    identifier: str = ""
    label: Optional[str] = None


# === Block nodes ===


@dataclass(frozen=True)
class ParagraphNode:
    type: ClassVar[str] = "paragraph"
    children: tuple[InlineNode, ...] = ()


@dataclass(frozen=True)
class HeadingNode:
    type: ClassVar[str] = "heading"
    depth: int = 1
    children: tuple[InlineNode, ...] = ()


@dataclass(frozen=True)
class BlockquoteNode:
    type: ClassVar[str] = "blockquote"
    children: tuple[BlockNode, ...] = ()


@dataclass(frozen=True)
class ListItemNode:
    type: ClassVar[str] = "listItem"
    checked: Optional[bool] = None
    children: tuple[BlockNode, ...] = ()


@dataclass(frozen=True)
class ListNode:
    type: ClassVar[str] = "list"
    ordered: bool = False
    start: int = 1
    children: tuple[ListItemNode, ...] = ()


@dataclass(frozen=True)
class CodeBlockNode:
    type: ClassVar[str] = "codeBlock"
    value: str = ""
    lang: Optional[str] = None
    meta: Optional[str] = None


@dataclass(frozen=True)
class MermaidBlockNode:
    type: ClassVar[str] = "mermaidBlock"
    code: str = ""
    diagram_type: Optional[str] = None


@dataclass(frozen=True)
class MathBlockNode:
    type: ClassVar[str] = "mathBlock"
    tex: str = ""


@dataclass(frozen=True)
class ThematicBreakNode:
    type: ClassVar[str] = "thematicBreak"


@dataclass(frozen=True)
class ImageBlockNode:
    type: ClassVar[str] = "imageBlock"
    asset_id: str = ""
    original_url: Optional[str] = None
    alt: Optional[str] = None
    title: Optional[str] = None
    caption: tuple[InlineNode, ...] = ()


@dataclass(frozen=True)
class TableCellNode:
    type: ClassVar[str] = "tableCell"
    header: bool = False
    rowspan: Optional[int] = None
    colspan: Optional[int] = None
    align: TableAlign = None
    children: tuple[InlineNode, ...] = ()


@dataclass(frozen=True)
class TableRowNode:
    type: ClassVar[str] = "tableRow"
    children: tuple[TableCellNode, ...] = ()


@dataclass(frozen=True)
class TableNode:
    type: ClassVar[str] = "table"
    align: tuple[TableAlign, ...] = ()
    has_rowspan: bool = False
    has_colspan: bool = False
    caption: tuple[InlineNode, ...] = ()
    children: tuple[TableRowNode, ...] = ()


@dataclass(frozen=True)
class HtmlBlockNode:
    type: ClassVar[str] = "htmlBlock"
    value: str = ""


@dataclass(frozen=True)
class EmbedBlockNode:
    type: ClassVar[str] = "embedBlock"
    url: Optional[str] = None
    html: Optional[str] = None
    provider: Optional[str] = None
    embed_type: str = "other"  # video, audio, iframe, card, tweet, codepen, other


@dataclass(frozen=True)
class FootnoteDefNode:
    type: ClassVar[str] = "footnoteDef"
    identifier: str = ""
    label: Optional[str] = None
    children: tuple[BlockNode, ...] = ()


@dataclass(frozen=True)
class TocNode:
    type: ClassVar[str] = "toc"


@dataclass(frozen=True)
class FrontmatterNode:
    type: ClassVar[str] = "frontmatter"
    value: str = ""


@dataclass(frozen=True)
class UnknownNode:
    """Placeholder for a tag this schema does not know yet."""

    type: str = "unknown"
    data: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


# === Root ===


@dataclass(frozen=True)
class RootNode:
    type: ClassVar[str] = "root"
    children: tuple[BlockNode, ...] = ()


InlineNode = Union[
    TextNode,
    EmphasisNode,
    StrongNode,
    DeleteNode,
    InlineCodeNode,
    LinkNode,
    ImageInlineNode,
    MathInlineNode,
    BreakNode,
    HtmlInlineNode,
    FootnoteRefNode,
    UnknownNode,
]

BlockNode = Union[
    ParagraphNode,
    HeadingNode,
    BlockquoteNode,
    ListNode,
    ListItemNode,
    CodeBlockNode,
    MermaidBlockNode,
    MathBlockNode,
    ThematicBreakNode,
    ImageBlockNode,
    TableNode,
    TableRowNode,
    TableCellNode,
    HtmlBlockNode,
    EmbedBlockNode,
    FootnoteDefNode,
    TocNode,
    FrontmatterNode,
    UnknownNode,
]

CanonicalNode = Union[RootNode, BlockNode, InlineNode]

INLINE_TYPES = frozenset({
    "text", "emphasis", "strong", "delete", "inlineCode", "link",
    "imageInline", "mathInline", "break", "htmlInline", "footnoteRef",
})

BLOCK_TYPES = frozenset({
    "paragraph", "heading", "blockquote", "list", "listItem", "codeBlock",
    "mermaidBlock", "mathBlock", "thematicBreak", "imageBlock", "table",
    "tableRow", "tableCell", "htmlBlock", "embedBlock", "footnoteDef", "toc",
    "frontmatter",
})


def is_inline_node(node: Any) -> bool:
    return getattr(node, "type", None) in INLINE_TYPES


def is_block_node(node: Any) -> bool:
    return getattr(node, "type", None) in BLOCK_TYPES
