"""Inline formatter: resolve code spans, links and emphasis inside block text.

Rules run in a fixed order and each one only sees text that earlier rules left
unclaimed. A claimed range is swapped for an opaque placeholder token, so a
later rule can wrap it (``*see `x`*``) but can never look inside it or split it.

Links and emphasis are paired against precomputed closer positions, so each
opener is examined once no matter how many are left unbalanced.
"""

from __future__ import annotations

import bisect
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Union

# Placeholder tokens are NUL-delimited indexes. NUL in the input is replaced
# with U+FFFD up front, so a token can only come from `_Claims.claim`.
_TOKEN_RE = re.compile(r"\x00(\d+)\x00")

_CODE_RE = re.compile(r"`([^`]+)`")

Span = tuple[int, int]


@dataclass(frozen=True, slots=True)
class PlainText:
    text: str


@dataclass(frozen=True, slots=True)
class InlineCode:
    code: str


@dataclass(frozen=True, slots=True)
class Link:
    label: str
    href: str


@dataclass(frozen=True, slots=True)
class Bold:
    children: tuple[InlineNode, ...]


@dataclass(frozen=True, slots=True)
class Italic:
    children: tuple[InlineNode, ...]


InlineNode = Union[PlainText, InlineCode, Link, Bold, Italic]


class _Claims:
    """Nodes claimed so far during one `format_inline` call."""

    def __init__(self) -> None:
        self._nodes: list[InlineNode] = []

    def claim(self, node: InlineNode) -> str:
        self._nodes.append(node)
        return f"\x00{len(self._nodes) - 1}\x00"

    def expand(self, text: str) -> tuple[InlineNode, ...]:
        out: list[InlineNode] = []
        pos = 0
        for m in _TOKEN_RE.finditer(text):
            if m.start() > pos:
                out.append(PlainText(text[pos : m.start()]))
            out.append(self._nodes[int(m.group(1))])
            pos = m.end()
        if pos < len(text):
            out.append(PlainText(text[pos:]))
        return tuple(out)


class _NextChar:
    """Next index of `ch` at or after a position; positions must not decrease."""

    def __init__(self, text: str, ch: str) -> None:
        self._text = text
        self._ch = ch
        self._found = -1

    def at_or_after(self, start: int) -> int:
        if start > self._found:
            idx = self._text.find(self._ch, start)
            self._found = len(self._text) if idx < 0 else idx
        return self._found


def _link_spans(text: str) -> Iterator[Span]:
    """Yield ``(start, end)`` for each ``[label](href)``, left to right.

    Neither part may be empty or contain a placeholder token.
    """

    n = len(text)
    close_bracket = _NextChar(text, "]")
    close_paren = _NextChar(text, ")")
    label_token = _NextChar(text, "\x00")
    href_token = _NextChar(text, "\x00")

    pos = text.find("[")
    while pos >= 0:
        label_end = close_bracket.at_or_after(pos + 1)
        if label_end == n:
            return
        if (
            label_end > pos + 1
            and label_token.at_or_after(pos + 1) > label_end
            and text.startswith("(", label_end + 1)
        ):
            href_end = close_paren.at_or_after(label_end + 2)
            if label_end + 2 < href_end < n and href_token.at_or_after(label_end + 2) > href_end:
                yield pos, href_end + 1
                pos = text.find("[", href_end + 1)
                continue
        pos = text.find("[", pos + 1)


def _is_bold_open(text: str, i: int) -> bool:
    return text.startswith("**", i) and i + 2 < len(text) and not text[i + 2].isspace()


def _is_bold_close(text: str, j: int) -> bool:
    return (
        j > 0
        and text.startswith("**", j)
        and not text[j - 1].isspace()
        and not text.startswith("*", j + 2)
    )


def _is_italic_open(text: str, i: int) -> bool:
    if i > 0 and text[i - 1] == "*":
        return False
    return i + 1 < len(text) and not text[i + 1].isspace() and text[i + 1] != "*"


def _is_italic_close(text: str, j: int) -> bool:
    if j == 0 or text[j - 1].isspace() or text[j - 1] == "*":
        return False
    return not text.startswith("*", j + 1)


def _emphasis_spans(
    text: str,
    *,
    width: int,
    is_open: Callable[[str, int], bool],
    is_close: Callable[[str, int], bool],
) -> Iterator[Span]:
    """Pair each opener with the nearest closer that leaves a non-empty interior.

    Openers are taken left to right and matched spans never overlap. Once an
    opener finds no closer, no later opener can either.
    """

    stars = [i for i, ch in enumerate(text) if ch == "*"]
    closers = [j for j in stars if is_close(text, j)]

    pos = 0
    for i in stars:
        if i < pos or not is_open(text, i):
            continue
        k = bisect.bisect_left(closers, i + width + 1)
        if k == len(closers):
            return
        end = closers[k] + width
        yield i, end
        pos = end


def _substitute(text: str, spans: Iterator[Span], repl: Callable[[int, int], str]) -> str:
    out: list[str] = []
    pos = 0
    for start, end in spans:
        out.append(text[pos:start])
        out.append(repl(start, end))
        pos = end
    if not out:
        return text
    out.append(text[pos:])
    return "".join(out)


def format_inline(text: str) -> list[InlineNode]:
    """Resolve `text` into inline nodes.

    Order: inline code, links, bold, italic, then plain text. Delimiters that
    have no balanced partner are left in place as literal text.
    """

    if not text:
        return []

    claims = _Claims()

    text = text.replace("\x00", "\ufffd")
    text = _CODE_RE.sub(lambda m: claims.claim(InlineCode(m.group(1))), text)

    def link(start: int, end: int) -> str:
        label_end = text.index("]", start + 1)
        href = text[label_end + 2 : end - 1]
        return claims.claim(Link(label=text[start + 1 : label_end], href=href.strip()))

    text = _substitute(text, _link_spans(text), link)

    def italics(segment: str) -> str:
        return _substitute(
            segment,
            _emphasis_spans(
                segment, width=1, is_open=_is_italic_open, is_close=_is_italic_close
            ),
            lambda s, e: claims.claim(Italic(claims.expand(segment[s + 1 : e - 1]))),
        )

    def bold(start: int, end: int) -> str:
        # Italic inside a bold pair is resolved against the pair's interior
        # only, so `***x***` nests as <strong><em>x</em></strong>.
        inner = italics(text[start + 2 : end - 2])
        return claims.claim(Bold(claims.expand(inner)))

    text = _substitute(
        text,
        _emphasis_spans(text, width=2, is_open=_is_bold_open, is_close=_is_bold_close),
        bold,
    )
    text = italics(text)
    return list(claims.expand(text))
