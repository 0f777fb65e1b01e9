"""Blog post loading: markdown files with YAML frontmatter.

Posts live in a directory as ``<slug>.md`` files:

    ---
    title: "My Post"
    date: "2026-02-23"
    excerpt: "Optional excerpt"
    tags: ["tag1", "tag2"]
    ---
    Content in Markdown...

`content` on a loaded post is exactly the markdown body that gets rendered.
"""

from __future__ import annotations

import calendar
import datetime as dt
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from postdown.errors import PostdownPostError
from postdown.paths import is_valid_slug, post_path_for_slug, slug_from_path

logger = logging.getLogger("postdown.posts")

EXCERPT_LENGTH = 160

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\n(.*?)\n?^---[ \t]*(?:\n|\Z)", re.DOTALL | re.MULTILINE)


@dataclass(frozen=True, slots=True)
class Post:
    slug: str
    title: str
    date: str
    excerpt: str
    content: str
    tags: tuple[str, ...] = ()

    def metadata(self) -> dict[str, object]:
        """The post record without its content, JSON-serializable."""

        return {
            "slug": self.slug,
            "title": self.title,
            "date": self.date,
            "excerpt": self.excerpt,
            "tags": list(self.tags),
        }


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split a leading ``---`` YAML block from the markdown body."""

    text = text.replace("\r\n", "\n")
    m = _FRONTMATTER_RE.match(text)
    if m is None:
        return {}, text

    try:
        data = yaml.safe_load(m.group(1))
    except yaml.YAMLError as e:
        raise PostdownPostError(f"Invalid YAML frontmatter: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise PostdownPostError("Frontmatter must be a YAML mapping.")
    return data, text[m.end() :]


def _as_date_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return str(value)


def _as_tags(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list):
        return tuple(str(t) for t in value)
    raise PostdownPostError("Expected tags to be a list of strings.")


def make_excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    return content[:length].strip() + "..."


def parse_post(path: Path) -> Post:
    """Read and parse one post file. The slug is the file stem."""

    slug = slug_from_path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise PostdownPostError(f"Failed reading post: {path}") from e

    try:
        data, content = split_frontmatter(text)
        tags = _as_tags(data.get("tags"))
    except PostdownPostError as e:
        raise PostdownPostError(f"{path.name}: {e}") from e

    title = data.get("title") or slug
    excerpt = data.get("excerpt") or make_excerpt(content)
    post = Post(
        slug=slug,
        title=str(title),
        date=_as_date_str(data.get("date")),
        excerpt=str(excerpt),
        content=content,
        tags=tags,
    )
    logger.debug("loaded post %s (%d chars)", slug, len(content))
    return post


def _parse_date(value: str) -> dt.date | None:
    if not value:
        return None
    try:
        return dt.date.fromisoformat(value[:10])
    except ValueError:
        return None


def _sort_key(post: Post) -> tuple[int, int, str]:
    # Newest first; undated posts last; slug breaks ties.
    d = _parse_date(post.date)
    if d is None:
        return (1, 0, post.slug)
    return (0, -d.toordinal(), post.slug)


def load_posts(posts_dir: Path) -> list[Post]:
    """Load every ``*.md`` post in `posts_dir`, newest first.

    A missing directory yields an empty list.
    """

    if not posts_dir.is_dir():
        logger.debug("posts directory %s does not exist", posts_dir)
        return []

    posts = [parse_post(p) for p in sorted(posts_dir.glob("*.md")) if p.is_file()]
    return sorted(posts, key=_sort_key)


def get_post(posts_dir: Path, slug: str) -> Post | None:
    """Load a single post by slug, or None if there is no such post."""

    if not is_valid_slug(slug):
        return None
    path = post_path_for_slug(posts_dir, slug)
    if not path.is_file():
        return None
    return parse_post(path)


def format_post_date(value: str, style: str = "short") -> str:
    """Format an ISO date for display: "Jan 15, 2025" or "January 15, 2025".

    Values that are not ISO dates are returned unchanged.
    """

    d = _parse_date(value)
    if d is None:
        return value
    names = calendar.month_name if style == "long" else calendar.month_abbr
    return f"{names[d.month]} {d.day}, {d.year}"
