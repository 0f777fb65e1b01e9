from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor

import pytest

import postdown
from postdown import RenderOptions, render, render_fragment

END_TO_END = "# Title\nSome **bold** and *italic* text with `code`.\n\n- one\n- two\n"


def test_render_is_deterministic() -> None:
    assert render(END_TO_END) == render(END_TO_END)


def test_end_to_end_example() -> None:
    assert render(END_TO_END) == "\n".join(
        [
            "<h1>Title</h1>",
            "<p>Some <strong>bold</strong> and <em>italic</em> text with <code>code</code>.</p>",
            "<ul>",
            "<li>one</li>",
            "<li>two</li>",
            "</ul>",
        ]
    )


def test_script_tags_in_prose_are_escaped() -> None:
    html = render("Hello <script>alert(1)</script> & bye")
    assert "<script>" not in html
    assert html == "<p>Hello &lt;script&gt;alert(1)&lt;/script&gt; &amp; bye</p>"


def test_fenced_code_is_immune_to_formatting() -> None:
    html = render("```\n**bold**\n```")
    assert html == "<pre><code>**bold**</code></pre>"
    assert "<strong>" not in html


def test_three_items_make_one_list() -> None:
    html = render("- a\n- b\n- c")
    assert html == "<ul>\n<li>a</li>\n<li>b</li>\n<li>c</li>\n</ul>"
    assert html.count("<ul>") == 1
    assert html.count("<li>") == 3


def test_adjacent_lines_merge_into_one_paragraph() -> None:
    html = render("first line\nsecond line")
    assert html == "<p>first line\nsecond line</p>"
    assert html.count("<p>") == 1


def test_blank_line_separates_paragraphs() -> None:
    assert render("First paragraph.\n\nSecond paragraph.") == (
        "<p>First paragraph.</p>\n<p>Second paragraph.</p>"
    )


def test_heading_levels() -> None:
    assert render("# A\n## B\n### C") == "<h1>A</h1>\n<h2>B</h2>\n<h3>C</h3>"


def test_unbalanced_bold_is_literal() -> None:
    html = render("a ** b")
    assert html == "<p>a ** b</p>"
    assert "<strong>" not in html


def test_overlapping_emphasis_fixture() -> None:
    assert render("*word**word*") == "<p><em>word**word</em></p>"


def test_horizontal_rule_between_paragraphs() -> None:
    assert render("Above\n\n---\n\nBelow") == "<p>Above</p>\n<hr />\n<p>Below</p>"


def test_links_open_in_new_tab_by_default() -> None:
    assert render("[Google](https://google.com)") == (
        '<p><a href="https://google.com" target="_blank" rel="noopener noreferrer">'
        "Google</a></p>"
    )


def test_link_label_and_url_are_escaped() -> None:
    opts = RenderOptions(external_links=False)
    assert render('[a<b](http://x.com/"q")', opts) == (
        '<p><a href="http://x.com/&quot;q&quot;">a&lt;b</a></p>'
    )


def test_inline_code_content_is_escaped() -> None:
    assert render("use `<div>` here") == "<p>use <code>&lt;div&gt;</code> here</p>"


def test_inline_formatting_in_headings_and_items() -> None:
    assert render("## **Bold** head\n- *it*") == (
        "<h2><strong>Bold</strong> head</h2>\n<ul>\n<li><em>it</em></li>\n</ul>"
    )


def test_unterminated_fence_with_language() -> None:
    assert render("```js\nconst x = 1;") == (
        '<pre><code class="language-js">const x = 1;</code></pre>'
    )


@pytest.mark.parametrize(
    "source",
    [
        "",
        "   ",
        "```",
        "```py\nunterminated",
        "**",
        "*",
        "[",
        "[a](",
        "`",
        "# ",
        "-",
        "---\n---",
        "\x00",
        "\r\n\r\n",
        "***",
        "*a **b* c**",
    ],
)
def test_render_never_raises(source: str) -> None:
    assert isinstance(render(source), str)


def test_empty_input_renders_empty_string() -> None:
    assert render("") == ""


@pytest.mark.parametrize(
    "unit",
    ["**a ", "*a ", "[a](", "[", "**a** b** ", "` `* "],
)
def test_unbalanced_delimiters_render_in_bounded_time(unit: str) -> None:
    source = unit * (32_000 // len(unit))
    start = time.perf_counter()
    html = render(source)
    elapsed = time.perf_counter() - start
    assert html.startswith("<p>")
    # A quadratic rescan per opener takes several seconds at this size.
    assert elapsed < 1.0


def test_concurrent_renders_match_serial_renders() -> None:
    sources = [END_TO_END, "```\n<x>\n```", "- a\n- b", "plain *text*"] * 8
    expected = [render(s) for s in sources]
    with ThreadPoolExecutor(max_workers=4) as pool:
        assert list(pool.map(render, sources)) == expected


def test_render_fragment_wraps_output() -> None:
    assert render_fragment("hi", css_class="prose-custom") == (
        '<div class="prose-custom">\n<p>hi</p>\n</div>'
    )
    assert render_fragment("hi", wrapper_tag="article") == "<article>\n<p>hi</p>\n</article>"


def test_render_fragment_empty_source_is_self_closing() -> None:
    assert render_fragment("") == "<div />"
    assert render_fragment("  \n", css_class="x") == '<div class="x" />'


@pytest.mark.parametrize("tag", ["", "di v", "<div>", "div>", "1div", "div\n"])
def test_render_fragment_rejects_bad_wrapper_tag(tag: str) -> None:
    with pytest.raises(ValueError):
        render_fragment("x", wrapper_tag=tag)


def test_public_api() -> None:
    assert postdown.render is render
    assert isinstance(postdown.__version__, str)
