"""Markdown subset to HTML: scanner, inline formatter and emitter in one call."""

from __future__ import annotations

import re

from postdown.blocks import scan_blocks
from postdown.emitter import RenderOptions, emit_html, escape_attr

_TAG_NAME_RE = re.compile(r"[A-Za-z][A-Za-z0-9-]*")


def is_valid_tag_name(tag: str) -> bool:
    return bool(_TAG_NAME_RE.fullmatch(tag or ""))


def render(source: str, options: RenderOptions | None = None) -> str:
    """Render `source` to an HTML string.

    Never raises for any document content: unterminated fences close at end of
    input and unbalanced emphasis stays literal. Empty input renders as "".
    """

    return emit_html(scan_blocks(source), options)


def render_fragment(
    source: str,
    *,
    wrapper_tag: str = "div",
    css_class: str | None = None,
    options: RenderOptions | None = None,
) -> str:
    """Render `source` and wrap the result in a single element.

    Empty output becomes a self-closing ``<wrapper_tag />``. Raises ValueError
    if `wrapper_tag` is not a plain tag name.
    """

    if not is_valid_tag_name(wrapper_tag):
        raise ValueError(f"Invalid wrapper tag: {wrapper_tag!r}")

    attrs = f' class="{escape_attr(css_class)}"' if css_class else ""
    body = render(source, options)
    if not body:
        return f"<{wrapper_tag}{attrs} />"
    return f"<{wrapper_tag}{attrs}>\n{body}\n</{wrapper_tag}>"
