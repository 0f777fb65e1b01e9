"""Block scanner: split markdown source into an ordered list of typed blocks.

Scanning is line oriented. Fenced code is recognised first so nothing inside a
fence is ever reinterpreted as another block type or as inline markup.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Union

logger = logging.getLogger("postdown.blocks")

FENCE = "```"

_FENCE_OPEN_RE = re.compile(r"^```[ \t]*([^\s`]+)?(?:[ \t][^`]*)?$")
_HEADING_RE = re.compile(r"^(#{1,3}) +(\S.*)$")
_LIST_ITEM_RE = re.compile(r"^- +(\S.*)$")
_RULE = "---"


@dataclass(frozen=True, slots=True)
class Heading:
    level: int
    text: str


@dataclass(frozen=True, slots=True)
class CodeBlock:
    language: str | None
    content: str


@dataclass(frozen=True, slots=True)
class ListItem:
    text: str


@dataclass(frozen=True, slots=True)
class HorizontalRule:
    pass


@dataclass(frozen=True, slots=True)
class Paragraph:
    text: str


Block = Union[Heading, CodeBlock, ListItem, HorizontalRule, Paragraph]


class ScanMode(enum.Enum):
    NORMAL = "normal"
    IN_FENCE = "in_fence"


@dataclass(slots=True)
class _ScanState:
    """Per-call scanner state; never shared between calls."""

    mode: ScanMode = ScanMode.NORMAL
    blocks: list[Block] = field(default_factory=list)
    paragraph: list[str] = field(default_factory=list)
    fence_language: str | None = None
    fence_lines: list[str] = field(default_factory=list)

    def flush_paragraph(self) -> None:
        if self.paragraph:
            self.blocks.append(Paragraph("\n".join(self.paragraph)))
            self.paragraph = []

    def open_fence(self, language: str | None) -> None:
        self.flush_paragraph()
        self.mode = ScanMode.IN_FENCE
        self.fence_language = language
        self.fence_lines = []

    def close_fence(self) -> None:
        self.blocks.append(CodeBlock(self.fence_language, "\n".join(self.fence_lines)))
        self.mode = ScanMode.NORMAL
        self.fence_language = None
        self.fence_lines = []


def normalize_source(source: str) -> str:
    """Unify line endings and replace NUL characters with U+FFFD."""

    return source.replace("\r\n", "\n").replace("\r", "\n").replace("\x00", "\ufffd")


def split_lines(source: str) -> list[str]:
    if not source:
        return []
    return normalize_source(source).split("\n")


def _scan_fenced_line(state: _ScanState, line: str) -> None:
    # Only a bare fence closes the block; "```py" inside a fence is content.
    if line.rstrip() == FENCE:
        state.close_fence()
    else:
        state.fence_lines.append(line)


def _scan_normal_line(state: _ScanState, line: str) -> None:
    stripped = line.rstrip()

    m = _FENCE_OPEN_RE.match(stripped)
    if m:
        state.open_fence(m.group(1))
        return

    if not stripped.strip():
        state.flush_paragraph()
        return

    m = _HEADING_RE.match(stripped)
    if m:
        state.flush_paragraph()
        state.blocks.append(Heading(len(m.group(1)), m.group(2).strip()))
        return

    if stripped == _RULE:
        state.flush_paragraph()
        state.blocks.append(HorizontalRule())
        return

    m = _LIST_ITEM_RE.match(stripped)
    if m:
        state.flush_paragraph()
        state.blocks.append(ListItem(m.group(1).strip()))
        return

    state.paragraph.append(stripped.strip())


def scan_blocks(source: str) -> list[Block]:
    """Scan `source` into blocks, in source order.

    Per line, block patterns are tried in a fixed order: fence, heading,
    horizontal rule, list item, paragraph text. A blank line only terminates
    the open paragraph. An unterminated fence is closed at end of input.
    """

    state = _ScanState()
    for line in split_lines(source):
        if state.mode is ScanMode.IN_FENCE:
            _scan_fenced_line(state, line)
        else:
            _scan_normal_line(state, line)

    if state.mode is ScanMode.IN_FENCE:
        logger.debug("unterminated code fence closed at end of input")
        state.close_fence()
    state.flush_paragraph()
    return state.blocks
