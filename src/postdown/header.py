"""Generated-file header for rendered posts.

Rendered fragments start with a block of HTML comments, one field per line:

    <!-- postdown:generated -->
    <!-- postdown:tool_version=0.1.0 -->
    <!-- postdown:slug=hello-world -->
    <!-- postdown:source_digest=sha256:... -->

The build reads `source_digest` back to decide whether a post is stale.
"""

from __future__ import annotations

import re

HEADER_MARKER = "<!-- postdown:generated -->"

_FIELD_RE = re.compile(r"^<!-- postdown:([a-z_]+)=(.*) -->$")


def format_header(*, tool_version: str, slug: str, source_digest: str) -> str:
    if not source_digest.startswith("sha256:"):
        source_digest = f"sha256:{source_digest}"
    lines = [
        HEADER_MARKER,
        f"<!-- postdown:tool_version={tool_version} -->",
        f"<!-- postdown:slug={slug} -->",
        f"<!-- postdown:source_digest={source_digest} -->",
    ]
    return "\n".join(lines)


def parse_header(text: str) -> dict[str, str] | None:
    """Return header fields, or None if `text` has no Postdown header."""

    lines = text.splitlines()
    if not lines or lines[0] != HEADER_MARKER:
        return None

    fields: dict[str, str] = {}
    for line in lines[1:]:
        m = _FIELD_RE.match(line)
        if m is None:
            break
        fields[m.group(1)] = m.group(2)
    return fields


def extract_source_digest(text: str) -> str | None:
    fields = parse_header(text)
    if fields is None:
        return None
    return fields.get("source_digest")
