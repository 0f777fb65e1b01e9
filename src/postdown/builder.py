from __future__ import annotations

import asyncio
import hashlib
import importlib.metadata
import json
import logging
import os
import tempfile
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from pathlib import Path

from postdown import paths
from postdown.emitter import RenderOptions
from postdown.errors import PostdownBuildError
from postdown.header import extract_source_digest, format_header
from postdown.posts import Post
from postdown.render import render_fragment

logger = logging.getLogger("postdown.build")


def _tool_version() -> str:
    try:
        return importlib.metadata.version("postdown")
    except Exception:
        return "0"


def _normalize_digest(digest: str | None) -> str | None:
    if not digest:
        return None
    if digest.startswith("sha256:"):
        return digest.split(":", 1)[1]
    return digest


@dataclass(frozen=True, slots=True)
class FragmentSettings:
    """Everything besides the post itself that affects rendered output."""

    options: RenderOptions = RenderOptions()
    wrapper_tag: str = "div"
    css_class: str = ""


def post_digest(post: Post, settings: FragmentSettings) -> str:
    """Digest of the post content and the render settings."""

    payload = json.dumps(
        {"content": post.content, "settings": asdict(settings)},
        sort_keys=True,
        ensure_ascii=True,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def render_post(post: Post, settings: FragmentSettings) -> str:
    return render_fragment(
        post.content,
        wrapper_tag=settings.wrapper_tag,
        css_class=settings.css_class or None,
        options=settings.options,
    )


def _atomic_write(out_path: Path, content: str) -> None:
    fd, tmp = tempfile.mkstemp(
        dir=str(out_path.parent),
        prefix=".postdown-tmp-",
        suffix=out_path.suffix,
        text=True,
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, out_path)
    finally:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass


def write_rendered_post(*, out_dir: Path, slug: str, html: str, source_digest: str) -> Path:
    """Atomically write a rendered post with a Postdown header."""

    if not paths.is_valid_slug(slug):
        raise PostdownBuildError(f"Refusing to write post with invalid slug: {slug!r}")

    out_path = paths.output_path_for_slug(out_dir, slug).resolve()
    root = out_dir.resolve()
    if root not in out_path.parents:
        raise PostdownBuildError("Refusing to write outside out_dir.")

    out_path.parent.mkdir(parents=True, exist_ok=True)
    hdr = format_header(tool_version=_tool_version(), slug=slug, source_digest=source_digest)
    _atomic_write(out_path, hdr + "\n" + html.rstrip() + "\n")
    return out_path


def write_index(out_dir: Path, posts: Sequence[Post]) -> Path:
    """Write `posts.json`: post metadata without content, in the given order."""

    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / paths.INDEX_FILENAME
    payload = json.dumps([p.metadata() for p in posts], indent=2, ensure_ascii=False)
    _atomic_write(out_path, payload + "\n")
    return out_path


def detect_stale_posts(
    *,
    out_dir: Path,
    posts: Sequence[Post],
    settings: FragmentSettings,
    force: bool = False,
) -> set[str]:
    if force:
        return {p.slug for p in posts}

    stale: set[str] = set()
    for post in posts:
        out_path = paths.output_path_for_slug(out_dir, post.slug)
        if not out_path.exists():
            stale.add(post.slug)
            continue

        try:
            existing = out_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            stale.add(post.slug)
            continue

        on_disk = _normalize_digest(extract_source_digest(existing))
        if on_disk is None or on_disk != post_digest(post, settings):
            stale.add(post.slug)

    return stale


@dataclass(frozen=True, slots=True)
class BuildReport:
    rendered: set[str]
    skipped: set[str]
    failed: dict[str, list[str]]


async def run_build(
    *,
    out_dir: Path,
    posts: Sequence[Post],
    settings: FragmentSettings,
    stale: set[str],
    jobs: int = 4,
    progress: object | None = None,
) -> BuildReport:
    """Render and write every stale post, at most `jobs` at a time.

    Rendering is pure and CPU-bound, so each post is rendered and written in
    a worker thread; the event loop only schedules.
    """

    jobs = max(1, int(jobs))
    by_slug = {p.slug: p for p in posts}
    todo = sorted(s for s in stale if s in by_slug)
    skipped = set(by_slug) - set(todo)

    rendered: set[str] = set()
    failed: dict[str, list[str]] = {}

    def build_one(post: Post) -> None:
        html = render_post(post, settings)
        write_rendered_post(
            out_dir=out_dir,
            slug=post.slug,
            html=html,
            source_digest=post_digest(post, settings),
        )

    in_flight: dict[asyncio.Task[None], str] = {}
    queue = list(reversed(todo))

    while queue or in_flight:
        while queue and len(in_flight) < jobs:
            slug = queue.pop()
            t: asyncio.Task[None] = asyncio.create_task(
                asyncio.to_thread(build_one, by_slug[slug])
            )
            in_flight[t] = slug

        done, _ = await asyncio.wait(in_flight.keys(), return_when=asyncio.FIRST_COMPLETED)
        for t in done:
            slug = in_flight.pop(t)
            ok = True
            try:
                t.result()
            except Exception as e:
                ok = False
                failed[slug] = [str(e) or type(e).__name__]
                logger.warning("failed rendering %s: %s", slug, e)

            if ok:
                rendered.add(slug)
                logger.debug("rendered %s", slug)

            if progress is not None:
                try:
                    progress.advance(slug, ok=ok)  # type: ignore[attr-defined]
                except Exception:
                    pass

    if progress is not None:
        try:
            progress.finish()  # type: ignore[attr-defined]
        except Exception:
            pass

    return BuildReport(rendered=rendered, skipped=skipped, failed=failed)
