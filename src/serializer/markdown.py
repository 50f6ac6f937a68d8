"""Markdown renderer for the canonical tree.

Fallbacks for what Markdown cannot express:
    - tables with row/col spans become a full HTML ``<table>`` under
      ``complex_table_mode="html"``; ``simplify`` (and the not yet
      implemented ``image``) flatten them into a pipe table
    - every ``math_mode`` renders ``$$...$$`` / ``$...$``
    - embeds become a link, else their raw HTML
"""

from __future__ import annotations

import re
from typing import Any, Callable

from src.document.nodes import ListItemNode, RootNode, TableNode

from .common import escape_markdown, report_gap, resolve_image_url
from .html import HtmlRenderer
from .options import SerializeOptions

_BACKTICK_RUN_RE = re.compile(r"`+")

_ALIGN_MARKERS = {
    "left": ":---",
    "right": "---:",
    "center": ":---:",
}


def _indent(text: str, prefix: str) -> str:
    return "\n".join(prefix + line if line else line for line in text.split("\n"))


def _fence_for(code: str) -> str:
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(code)), default=0)
    return "`" * max(3, longest + 1)


def _title_suffix(title) -> str:
    if not title:
        return ""
    return ' "{}"'.format(title.replace('"', '\\"'))


class MarkdownRenderer:
    """Renders blocks and inlines to Markdown.

    Unknown node types render as an empty string.
    """

    def __init__(self, options: SerializeOptions):
        self.options = options
        self._html = HtmlRenderer(options)
        self._blocks: dict[str, Callable[[Any], str]] = {
            "paragraph": lambda n: self.inlines(n.children),
            "heading": self._heading,
            "blockquote": self._blockquote,
            "list": self._list,
            "listItem": self._list_item,
            "codeBlock": self._code_block,
            "mermaidBlock": self._mermaid,
            "mathBlock": self._math_block,
            "thematicBreak": lambda n: "---",
            "imageBlock": self._image_block,
            "table": self._table,
            "htmlBlock": lambda n: n.value,
            "embedBlock": self._embed,
            "footnoteDef": self._footnote_def,
            "toc": lambda n: "[TOC]",
        }
        self._inlines: dict[str, Callable[[Any], str]] = {
            "text": lambda n: escape_markdown(n.value),
            "emphasis": self._emphasis,
            "strong": lambda n: f"**{self.inlines(n.children)}**",
            "delete": lambda n: f"~~{self.inlines(n.children)}~~",
            "inlineCode": self._inline_code,
            "link": self._link,
            "imageInline": self._image_inline,
            "mathInline": self._math_inline,
            "break": lambda n: "  \n",
            "htmlInline": lambda n: n.value,
            "footnoteRef": lambda n: f"[^{n.identifier}]",
        }

    def render(self, tree: RootNode) -> str:
        parts = (self.block(n) for n in tree.children)
        return "\n\n".join(p for p in parts if p).strip()

    def block(self, node: Any) -> str:
        handler = self._blocks.get(getattr(node, "type", ""))
        return handler(node) if handler else ""

    def inlines(self, nodes) -> str:
        return "".join(self.inline(n) for n in nodes)

    def inline(self, node: Any) -> str:
        handler = self._inlines.get(getattr(node, "type", ""))
        return handler(node) if handler else ""

    # --- Blocks ---

    def _heading(self, node) -> str:
        depth = min(max(node.depth, 1), 6)
        return f"{'#' * depth} {self.inlines(node.children)}"

    def _blockquote(self, node) -> str:
        quoted = []
        for child in node.children:
            content = self.block(child)
            if content:
                quoted.append("\n".join(f"> {line}" if line else ">" for line in content.split("\n")))
        return "\n>\n".join(quoted)

    def _list_item(self, item: ListItemNode) -> str:
        """Item body: task marker plus child blocks, one per line."""
        parts = (self.block(child) for child in item.children)
        body = "\n".join(p for p in parts if p)
        if item.checked is not None:
            body = ("[x] " if item.checked else "[ ] ") + body
        return body

    def _list(self, node) -> str:
        # Continuation lines indent two spaces relative to their item, so
        # nested lists end up two spaces deeper per level.
        lines = []
        for index, item in enumerate(node.children):
            marker = f"{node.start + index}." if node.ordered else self.options.bullet_marker
            first, _, rest = self._list_item(item).partition("\n")
            lines.append(f"{marker} {first}".rstrip())
            if rest:
                lines.append(_indent(rest, "  "))
        return "\n".join(lines)

    def _code_block(self, node) -> str:
        fence = _fence_for(node.value)
        info = (node.lang or "") + (f" {node.meta}" if node.meta else "")
        return f"{fence}{info}\n{node.value}\n{fence}"

    def _mermaid(self, node) -> str:
        fence = _fence_for(node.code)
        return f"{fence}mermaid\n{node.code}\n{fence}"

    def _check_math_mode(self) -> None:
        if self.options.math_mode != "latex":
            report_gap(
                f"math:{self.options.math_mode}",
                f"math_mode={self.options.math_mode!r} is not differentiated, emitting LaTeX",
            )

    def _math_block(self, node) -> str:
        self._check_math_mode()
        return f"$$\n{node.tex}\n$$"

    def _image_block(self, node) -> str:
        url = resolve_image_url(node.asset_id, node.original_url, self.options)
        out = f"![{node.alt or ''}]({url}{_title_suffix(node.title)})"
        if node.caption:
            out += f"\n*{self.inlines(node.caption)}*"
        return out

    def _embed(self, node) -> str:
        if node.url:
            label = node.provider or node.embed_type or "embed"
            return f"[{label}]({node.url})"
        return node.html or ""

    def _footnote_def(self, node) -> str:
        parts = (self.block(child) for child in node.children)
        first, _, rest = "\n".join(p for p in parts if p).partition("\n")
        out = f"[^{node.identifier}]: {first}".rstrip()
        if rest:
            out += "\n" + _indent(rest, "    ")
        return out

    def _table(self, node: TableNode) -> str:
        if node.has_rowspan or node.has_colspan:
            mode = self.options.complex_table_mode
            if mode == "html":
                return self._html.table(node)
            if mode == "image":
                report_gap(
                    "table:image",
                    "complex_table_mode='image' is not implemented, flattening spanned table",
                )
        return self._pipe_table(node)

    def _cell(self, cell) -> list[str]:
        content = self.inlines(cell.children).replace("|", "\\|")
        content = content.replace("  \n", "<br>").replace("\n", "<br>").strip()
        # Spanned cells are flattened, padding with empty cells
        return [content] + [""] * max((cell.colspan or 1) - 1, 0)

    def _pipe_table(self, node: TableNode) -> str:
        if not node.children:
            return ""

        rows = []
        for row in node.children:
            cells: list[str] = []
            for cell in row.children:
                cells.extend(self._cell(cell))
            rows.append(cells)

        col_count = len(rows[0])
        if col_count == 0:
            return ""

        align = [_ALIGN_MARKERS.get(a or "", "---") for a in node.align[:col_count]]
        align.extend(["---"] * (col_count - len(align)))

        lines = [f"| {' | '.join(rows[0])} |", f"| {' | '.join(align)} |"]
        for cells in rows[1:]:
            cells = cells + [""] * (col_count - len(cells))
            lines.append(f"| {' | '.join(cells)} |")
        return "\n".join(lines)

    # --- Inlines ---

    def _emphasis(self, node) -> str:
        marker = self.options.emphasis_marker
        return f"{marker}{self.inlines(node.children)}{marker}"

    def _inline_code(self, node) -> str:
        value = node.value
        if "`" not in value:
            return f"`{value}`"
        longest = max(len(run) for run in _BACKTICK_RUN_RE.findall(value))
        ticks = "`" * (longest + 1)
        return f"{ticks} {value} {ticks}"

    def _link(self, node) -> str:
        return f"[{self.inlines(node.children)}]({node.url}{_title_suffix(node.title)})"

    def _image_inline(self, node) -> str:
        url = resolve_image_url(node.asset_id, node.original_url, self.options)
        return f"![{node.alt or ''}]({url}{_title_suffix(node.title)})"

    def _math_inline(self, node) -> str:
        self._check_math_mode()
        return f"${node.tex}$"


def serialize_to_markdown(tree: RootNode, options: SerializeOptions | None = None) -> str:
    """Render ``tree`` as Markdown."""
    return MarkdownRenderer(options or SerializeOptions()).render(tree)
