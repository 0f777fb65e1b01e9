"""Pure helpers for mapping post slugs to source and output file paths."""

from __future__ import annotations

import re
from pathlib import Path

POST_SUFFIX = ".md"
OUTPUT_SUFFIX = ".html"
INDEX_FILENAME = "posts.json"

_SLUG_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")


def is_valid_slug(slug: str) -> bool:
    return bool(_SLUG_RE.fullmatch(slug)) and ".." not in slug


def slug_from_path(path: Path) -> str:
    return path.stem


def post_path_for_slug(posts_dir: Path, slug: str) -> Path:
    return posts_dir / f"{slug}{POST_SUFFIX}"


def output_relpath(slug: str) -> Path:
    return Path(f"{slug}{OUTPUT_SUFFIX}")


def output_path_for_slug(out_dir: Path, slug: str) -> Path:
    return out_dir / output_relpath(slug)
