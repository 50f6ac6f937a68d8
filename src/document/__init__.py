# Document: canonical, target-independent article tree
"""
Canonical document model shared by every publishing target.

The tree is built once upstream (or from its JSON form with
``tree_from_dict``) and is never mutated; transforms return new trees.
"""

from .builder import node_from_dict, tree_from_dict
from .nodes import (
    BlockNode,
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
    InlineNode,
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
    is_block_node,
    is_inline_node,
)
from .transformer import (
    clean_tree,
    extract_image_asset_ids,
    remove_toc,
    rewrite_image_urls,
    visit_tree,
)

__all__ = [
    "BlockNode",
    "BlockquoteNode",
    "BreakNode",
    "CodeBlockNode",
    "DeleteNode",
    "EmbedBlockNode",
    "EmphasisNode",
    "FootnoteDefNode",
    "FootnoteRefNode",
    "FrontmatterNode",
    "HeadingNode",
    "HtmlBlockNode",
    "HtmlInlineNode",
    "ImageBlockNode",
    "ImageInlineNode",
    "InlineCodeNode",
    "InlineNode",
    "LinkNode",
    "ListItemNode",
    "ListNode",
    "MathBlockNode",
    "MathInlineNode",
    "MermaidBlockNode",
    "ParagraphNode",
    "RootNode",
    "StrongNode",
    "TableCellNode",
    "TableNode",
    "TableRowNode",
    "TextNode",
    "ThematicBreakNode",
    "TocNode",
    "UnknownNode",
    "clean_tree",
    "extract_image_asset_ids",
    "is_block_node",
    "is_inline_node",
    "node_from_dict",
    "remove_toc",
    "rewrite_image_urls",
    "tree_from_dict",
    "visit_tree",
]
