"""Tests for the Markdown renderer."""

import pytest

from src.assets.models import AssetManifest, ImageAssetEntry
from src.document import (
    BlockquoteNode,
    BreakNode,
    CodeBlockNode,
    EmbedBlockNode,
    EmphasisNode,
    FootnoteDefNode,
    FootnoteRefNode,
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
    UnknownNode,
    tree_from_dict,
)
from src.serializer import SerializeOptions, serialize, serialize_to_markdown


# --- Test helpers ---


def _p(text: str) -> ParagraphNode:
    return ParagraphNode(children=(TextNode(value=text),))


def _item(*blocks, checked=None) -> ListItemNode:
    return ListItemNode(checked=checked, children=tuple(blocks))


def _row(*texts, header=False) -> TableRowNode:
    return TableRowNode(children=tuple(
        TableCellNode(header=header, children=(TextNode(value=t),)) for t in texts
    ))


def _md(*blocks, **opts) -> str:
    return serialize_to_markdown(RootNode(children=tuple(blocks)), SerializeOptions(**opts))


class TestBasics:
    def test_sample_article(self, sample_tree_dict):
        tree = tree_from_dict(sample_tree_dict)
        assert serialize(tree) == (
            "## Intro\n\n"
            "Hello **world**\n\n"
            "![diagram](https://cdn.example.com/a.png)\n\n"
            "$$\nE = mc^2\n$$"
        )

    def test_escaping_is_conservative(self):
        out = _md(_p("a*b_c [x] <y> \\ # ok"))
        assert out == "a\\*b\\_c \\[x\\] &lt;y&gt; \\\\ # ok"

    def test_inline_marks(self):
        para = ParagraphNode(children=(
            EmphasisNode(children=(TextNode(value="em"),)),
            TextNode(value=" "),
            StrongNode(children=(TextNode(value="strong"),)),
            TextNode(value=" "),
            InlineCodeNode(value="x = 1"),
            TextNode(value=" "),
            LinkNode(url="https://a.io", title="A", children=(TextNode(value="link"),)),
        ))
        assert _md(para) == '_em_ **strong** `x = 1` [link](https://a.io "A")'

    def test_emphasis_marker_option(self):
        para = ParagraphNode(children=(EmphasisNode(children=(TextNode(value="em"),)),))
        assert _md(para, emphasis_marker="*") == "*em*"

    def test_inline_code_with_backticks(self):
        para = ParagraphNode(children=(InlineCodeNode(value="a`b"),))
        assert _md(para) == "`` a`b ``"

    def test_code_blocks(self):
        out = _md(CodeBlockNode(value="print(1)", lang="python", meta="title=x"))
        assert out == "```python title=x\nprint(1)\n```"
        assert _md(MermaidBlockNode(code="graph TD")) == "```mermaid\ngraph TD\n```"

    def test_blockquote(self):
        out = _md(BlockquoteNode(children=(_p("one"), _p("two"))))
        assert out == "> one\n>\n> two"

    def test_break(self):
        para = ParagraphNode(children=(TextNode(value="a"), BreakNode(), TextNode(value="b")))
        assert _md(para) == "a  \nb"

    def test_footnotes(self):
        para = ParagraphNode(children=(TextNode(value="x"), FootnoteRefNode(identifier="1")))
        note = FootnoteDefNode(identifier="1", children=(_p("note"),))
        assert _md(para, note) == "x[^1]\n\n[^1]: note"


class TestLists:
    def test_ordered_list_numbers_from_start(self):
        lst = ListNode(ordered=True, start=3, children=(_item(_p("one")), _item(_p("two"))))
        assert _md(lst) == "3. one\n4. two"

    def test_bullet_marker_option(self):
        lst = ListNode(children=(_item(_p("a")),))
        assert _md(lst, bullet_marker="*") == "* a"

    def test_nested_lists_indent_two_spaces_per_level(self):
        inner = ListNode(children=(_item(_p("c")),))
        middle = ListNode(children=(_item(_p("b"), inner),))
        outer = ListNode(children=(_item(_p("a"), middle), _item(_p("d"))))
        assert _md(outer) == "- a\n  - b\n    - c\n- d"

    def test_task_items(self):
        lst = ListNode(children=(_item(_p("done"), checked=True), _item(_p("todo"), checked=False)))
        assert _md(lst) == "- [x] done\n- [ ] todo"

    def test_multi_block_item(self):
        lst = ListNode(children=(_item(_p("first"), CodeBlockNode(value="x")),))
        assert _md(lst) == "- first\n  ```\n  x\n  ```"


class TestTables:
    def test_simple_table_with_short_align(self):
        table = TableNode(
            align=("left",),
            children=(_row("A", "B", "C", header=True), _row("1", "2", "3")),
        )
        assert _md(table) == "| A | B | C |\n| :--- | --- | --- |\n| 1 | 2 | 3 |"

    def test_all_alignments(self):
        table = TableNode(
            align=("left", "right", "center", None),
            children=(_row("a", "b", "c", "d", header=True),),
        )
        assert _md(table).split("\n")[1] == "| :--- | ---: | :---: | --- |"

    @pytest.mark.parametrize("columns", [1, 2, 5, 12, 20])
    def test_separator_matches_column_count(self, columns):
        texts = [f"c{i}" for i in range(columns)]
        table = TableNode(
            align=("center",) * (columns + 3),
            children=(_row(*texts, header=True), _row(*texts)),
        )
        header, separator, data = _md(table).split("\n")
        assert separator.count("---") == columns
        assert separator.count("|") == data.count("|") == header.count("|")

    def test_pipe_in_cell_is_escaped(self):
        table = TableNode(children=(_row("a|b", header=True),))
        assert _md(table).startswith("| a\\|b |")

    @pytest.mark.parametrize("fmt", ["markdown", "html"])
    def test_spanned_table_becomes_html(self, fmt):
        table = TableNode(
            has_colspan=True,
            children=(
                TableRowNode(children=(
                    TableCellNode(header=True, colspan=2, children=(TextNode(value="wide"),)),
                )),
                _row("1", "2"),
            ),
        )
        out = serialize(RootNode(children=(table,)), SerializeOptions(format=fmt))
        assert out.startswith("<table>")
        assert '<th colspan="2">wide</th>' in out

    def test_spanned_table_simplify(self):
        table = TableNode(
            has_colspan=True,
            children=(
                TableRowNode(children=(
                    TableCellNode(header=True, colspan=2, children=(TextNode(value="wide"),)),
                )),
                _row("1", "2"),
            ),
        )
        out = _md(table, complex_table_mode="simplify")
        assert out == "| wide |  |\n| --- | --- |\n| 1 | 2 |"

    def test_image_table_mode_flattens(self):
        table = TableNode(has_rowspan=True, children=(_row("a", header=True),))
        assert _md(table, complex_table_mode="image").startswith("| a |")


class TestMath:
    @pytest.mark.parametrize("mode", ["latex", "image", "html"])
    def test_math_always_latex(self, mode):
        block = MathBlockNode(tex="x^2")
        para = ParagraphNode(children=(MathInlineNode(tex="y"),))
        assert _md(block, para, math_mode=mode) == "$$\nx^2\n$$\n\n$y$"


class TestImages:
    def _manifest(self, **entry) -> AssetManifest:
        data = {"id": "img-0", "original_url": "https://orig.com/a.png"}
        data.update(entry)
        return AssetManifest(images=[ImageAssetEntry(**data)])

    def _image(self) -> ImageBlockNode:
        return ImageBlockNode(asset_id="img-0", original_url="https://orig.com/a.png", alt="A")

    def test_map_by_asset_id_wins(self):
        out = _md(
            self._image(),
            platform="csdn",
            image_url_map={"img-0": "https://mapped/id.png"},
            assets=self._manifest(uploaded_urls={"csdn": "https://up/a.png"}),
        )
        assert out == "![A](https://mapped/id.png)"

    def test_map_by_original_url(self):
        out = _md(self._image(), image_url_map={"https://orig.com/a.png": "https://mapped/url.png"})
        assert out == "![A](https://mapped/url.png)"

    def test_uploaded_url_for_platform(self):
        manifest = self._manifest(uploaded_urls={"csdn": "https://up/a.png"}, proxy_url="https://proxy/a.png")
        assert _md(self._image(), platform="csdn", assets=manifest) == "![A](https://up/a.png)"
        # another platform falls through to the proxy
        assert _md(self._image(), platform="zhihu", assets=manifest) == "![A](https://proxy/a.png)"

    def test_asset_original_url(self):
        manifest = self._manifest(original_url="https://asset/a.png")
        node = ImageBlockNode(asset_id="img-0", alt="A")
        assert _md(node, assets=manifest) == "![A](https://asset/a.png)"

    def test_node_url_then_empty(self):
        assert _md(self._image()) == "![A](https://orig.com/a.png)"
        assert _md(ImageBlockNode(asset_id="missing")) == "![]()"

    def test_inline_image_same_precedence(self):
        para = ParagraphNode(children=(
            ImageInlineNode(asset_id="img-0", original_url="https://orig.com/a.png", title="T"),
        ))
        out = _md(para, image_url_map={"img-0": "https://mapped/x.png"})
        assert out == '![](https://mapped/x.png "T")'

    def test_caption(self):
        node = ImageBlockNode(
            asset_id="img-0", original_url="https://o/a.png",
            caption=(TextNode(value="Figure 1"),),
        )
        assert _md(node) == "![](https://o/a.png)\n*Figure 1*"


class TestFallbacks:
    def test_embed_prefers_link(self):
        embed = EmbedBlockNode(url="https://youtu.be/x", html="<iframe></iframe>", provider="youtube")
        assert _md(embed) == "[youtube](https://youtu.be/x)"

    def test_embed_html_then_empty(self):
        assert _md(EmbedBlockNode(html="<iframe src='x'></iframe>")) == "<iframe src='x'></iframe>"
        assert _md(EmbedBlockNode()) == ""

    def test_embed_label_falls_back_to_type(self):
        assert _md(EmbedBlockNode(url="https://v.io/1", embed_type="video")) == "[video](https://v.io/1)"

    def test_unknown_block_renders_empty(self):
        out = _md(_p("before"), UnknownNode(type="poll"), _p("after"))
        assert out == "before\n\nafter"

    def test_unknown_inline_renders_empty(self):
        para = ParagraphNode(children=(
            TextNode(value="a"), UnknownNode(type="sticker"), TextNode(value="b"),
        ))
        assert _md(para) == "ab"
