"""HTML renderer for the canonical tree."""

from __future__ import annotations

from typing import Any, Callable

from src.document.nodes import RootNode, TableNode, TableRowNode

from .common import escape_html, report_gap, resolve_image_url
from .options import SerializeOptions


class HtmlRenderer:
    """Renders blocks and inlines to restricted HTML.

    Unknown node types render as an empty string.
    """

    def __init__(self, options: SerializeOptions):
        self.options = options
        self._blocks: dict[str, Callable[[Any], str]] = {
            "paragraph": lambda n: f"<p>{self.inlines(n.children)}</p>",
            "heading": self._heading,
            "blockquote": lambda n: f"<blockquote>\n{self.blocks(n.children)}\n</blockquote>",
            "list": self._list,
            "listItem": lambda n: f"<li>{self._list_item_body(n)}</li>",
            "codeBlock": self._code_block,
            "mermaidBlock": lambda n: f'<pre class="mermaid">{escape_html(n.code)}</pre>',
            "mathBlock": self._math_block,
            "thematicBreak": lambda n: "<hr>",
            "imageBlock": self._image_block,
            "table": self.table,
            "htmlBlock": lambda n: n.value,
            "embedBlock": self._embed,
            "footnoteDef": self._footnote_def,
        }
        self._inlines: dict[str, Callable[[Any], str]] = {
            "text": lambda n: escape_html(n.value),
            "emphasis": lambda n: f"<em>{self.inlines(n.children)}</em>",
            "strong": lambda n: f"<strong>{self.inlines(n.children)}</strong>",
            "delete": lambda n: f"<del>{self.inlines(n.children)}</del>",
            "inlineCode": lambda n: f"<code>{escape_html(n.value)}</code>",
            "link": self._link,
            "imageInline": self._image_inline,
            "mathInline": self._math_inline,
            "break": lambda n: "<br>",
            "htmlInline": lambda n: n.value,
            "footnoteRef": self._footnote_ref,
        }

    def render(self, tree: RootNode) -> str:
        return self.blocks(tree.children)

    def blocks(self, nodes) -> str:
        parts = (self.block(n) for n in nodes)
        return "\n".join(p for p in parts if p)

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
        return f"<h{depth}>{self.inlines(node.children)}</h{depth}>"

    def _list_item_body(self, item) -> str:
        checkbox = ""
        if item.checked is not None:
            checkbox = f'<input type="checkbox"{" checked" if item.checked else ""} disabled> '
        return checkbox + self.blocks(item.children)

    def _list(self, node) -> str:
        tag = "ol" if node.ordered else "ul"
        start = f' start="{node.start}"' if node.ordered and node.start != 1 else ""
        items = "\n".join(f"<li>{self._list_item_body(item)}</li>" for item in node.children)
        return f"<{tag}{start}>\n{items}\n</{tag}>"

    def _code_block(self, node) -> str:
        lang = f' class="language-{escape_html(node.lang)}"' if node.lang else ""
        return f"<pre><code{lang}>{escape_html(node.value)}</code></pre>"

    def _math_block(self, node) -> str:
        if self.options.math_mode != "latex":
            report_gap(
                f"math:{self.options.math_mode}",
                f"math_mode={self.options.math_mode!r} is not differentiated, emitting LaTeX",
            )
        return f'<div class="math-block">$${escape_html(node.tex)}$$</div>'

    def _image_block(self, node) -> str:
        url = resolve_image_url(node.asset_id, node.original_url, self.options)
        alt = f' alt="{escape_html(node.alt)}"' if node.alt else ""
        title = f' title="{escape_html(node.title)}"' if node.title else ""
        out = f'<figure><img src="{escape_html(url)}"{alt}{title}>'
        if node.caption:
            out += f"<figcaption>{self.inlines(node.caption)}</figcaption>"
        return out + "</figure>"

    def _embed(self, node) -> str:
        if node.html:
            return node.html
        if node.url:
            label = escape_html(node.provider or "embed")
            return f'<a href="{escape_html(node.url)}">{label}</a>'
        return ""

    def _footnote_def(self, node) -> str:
        ident = escape_html(node.identifier)
        return f'<div class="footnote" id="fn-{ident}">\n{self.blocks(node.children)}\n</div>'

    def table(self, node: TableNode) -> str:
        """Full ``<table>``; leading all-header rows become ``<thead>``."""
        lines = ["<table>"]
        if node.caption:
            lines.append(f"<caption>{self.inlines(node.caption)}</caption>")

        header_rows: list[TableRowNode] = []
        body_rows: list[TableRowNode] = []
        for row in node.children:
            is_header = bool(row.children) and all(cell.header for cell in row.children)
            if is_header and not body_rows:
                header_rows.append(row)
            else:
                body_rows.append(row)

        if header_rows:
            lines.append("<thead>")
            lines.extend(self._table_row(row, True) for row in header_rows)
            lines.append("</thead>")
        if body_rows:
            lines.append("<tbody>")
            lines.extend(self._table_row(row, False) for row in body_rows)
            lines.append("</tbody>")

        lines.append("</table>")
        return "\n".join(lines)

    def _table_row(self, row: TableRowNode, in_header: bool) -> str:
        cells = []
        for cell in row.children:
            tag = "th" if cell.header or in_header else "td"
            attrs = []
            if cell.rowspan and cell.rowspan > 1:
                attrs.append(f'rowspan="{cell.rowspan}"')
            if cell.colspan and cell.colspan > 1:
                attrs.append(f'colspan="{cell.colspan}"')
            if cell.align:
                attrs.append(f'style="text-align: {cell.align}"')
            attr_str = (" " + " ".join(attrs)) if attrs else ""
            cells.append(f"<{tag}{attr_str}>{self.inlines(cell.children)}</{tag}>")
        return f"<tr>{''.join(cells)}</tr>"

    # --- Inlines ---

    def _link(self, node) -> str:
        title = f' title="{escape_html(node.title)}"' if node.title else ""
        return f'<a href="{escape_html(node.url)}"{title}>{self.inlines(node.children)}</a>'

    def _image_inline(self, node) -> str:
        url = resolve_image_url(node.asset_id, node.original_url, self.options)
        alt = f' alt="{escape_html(node.alt)}"' if node.alt else ""
        title = f' title="{escape_html(node.title)}"' if node.title else ""
        return f'<img src="{escape_html(url)}"{alt}{title}>'

    def _math_inline(self, node) -> str:
        if self.options.math_mode != "latex":
            report_gap(
                f"math:{self.options.math_mode}",
                f"math_mode={self.options.math_mode!r} is not differentiated, emitting LaTeX",
            )
        return f'<span class="math-inline">${escape_html(node.tex)}$</span>'

    def _footnote_ref(self, node) -> str:
        ident = escape_html(node.identifier)
        label = escape_html(node.label or node.identifier)
        return f'<sup><a href="#fn-{ident}">[{label}]</a></sup>'


def serialize_to_html(tree: RootNode, options: SerializeOptions | None = None) -> str:
    """Render ``tree`` as HTML."""
    return HtmlRenderer(options or SerializeOptions(format="html")).render(tree)
