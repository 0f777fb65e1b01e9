"""HTML emitter: serialize scanned blocks to a single HTML string."""

from __future__ import annotations

import html
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from postdown.blocks import Block, CodeBlock, Heading, HorizontalRule, ListItem
from postdown.inline import Bold, InlineCode, InlineNode, Italic, Link, PlainText, format_inline

EXTERNAL_LINK_ATTRS = ' target="_blank" rel="noopener noreferrer"'


@dataclass(frozen=True, slots=True)
class RenderOptions:
    external_links: bool = True
    code_language_class: bool = True


DEFAULT_OPTIONS = RenderOptions()


def escape_text(s: str) -> str:
    """Escape `&`, `<` and `>` for use as element text."""

    return html.escape(s, quote=False)


def escape_attr(s: str) -> str:
    """Escape a value for use inside a double-quoted attribute."""

    return html.escape(s, quote=True)


def emit_inline(nodes: Iterable[InlineNode], options: RenderOptions = DEFAULT_OPTIONS) -> str:
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, PlainText):
            parts.append(escape_text(node.text))
        elif isinstance(node, InlineCode):
            parts.append(f"<code>{escape_text(node.code)}</code>")
        elif isinstance(node, Bold):
            parts.append(f"<strong>{emit_inline(node.children, options)}</strong>")
        elif isinstance(node, Italic):
            parts.append(f"<em>{emit_inline(node.children, options)}</em>")
        elif isinstance(node, Link):
            attrs = EXTERNAL_LINK_ATTRS if options.external_links else ""
            parts.append(
                f'<a href="{escape_attr(node.href)}"{attrs}>{escape_text(node.label)}</a>'
            )
    return "".join(parts)


def _emit_code_block(block: CodeBlock, options: RenderOptions) -> str:
    code_open = "<code>"
    if block.language and options.code_language_class:
        code_open = f'<code class="language-{escape_attr(block.language)}">'
    return f"<pre>{code_open}{escape_text(block.content)}</code></pre>"


def _emit_block(block: Block, options: RenderOptions) -> str:
    if isinstance(block, Heading):
        inner = emit_inline(format_inline(block.text), options)
        return f"<h{block.level}>{inner}</h{block.level}>"
    if isinstance(block, CodeBlock):
        return _emit_code_block(block, options)
    if isinstance(block, HorizontalRule):
        return "<hr />"
    if isinstance(block, ListItem):
        return f"<li>{emit_inline(format_inline(block.text), options)}</li>"
    return f"<p>{emit_inline(format_inline(block.text), options)}</p>"


def emit_html(blocks: Sequence[Block], options: RenderOptions | None = None) -> str:
    """Serialize `blocks` to HTML, one top-level element per line.

    Each run of consecutive list items is wrapped in a single ``<ul>``; a lone
    item is a list of one.
    """

    opts = options or DEFAULT_OPTIONS
    out: list[str] = []
    in_list = False
    for block in blocks:
        is_item = isinstance(block, ListItem)
        if is_item and not in_list:
            out.append("<ul>")
            in_list = True
        elif in_list and not is_item:
            out.append("</ul>")
            in_list = False
        out.append(_emit_block(block, opts))
    if in_list:
        out.append("</ul>")
    return "\n".join(out)
