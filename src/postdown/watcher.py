"""Watch mode: rebuild rendered posts when post files change.

Raw filesystem batches are reduced to per-post changes (slug plus whether the
file went away) before anything is rebuilt, so editor noise never triggers a
build and log lines name posts rather than paths.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from postdown.paths import POST_SUFFIX, is_valid_slug, slug_from_path

logger = logging.getLogger("postdown.watch")

# watchfiles.Change.deleted
_DELETED = 3


@dataclass(frozen=True, slots=True)
class PostChange:
    slug: str
    path: Path
    deleted: bool = False


@dataclass(frozen=True, slots=True)
class WatchCycleResult:
    """Outcome of one rebuild triggered by a batch of post changes."""

    build_exit_code: int
    duration_s: float
    changes: tuple[PostChange, ...]

    @property
    def updated(self) -> list[str]:
        return [c.slug for c in self.changes if not c.deleted]

    @property
    def removed(self) -> list[str]:
        return [c.slug for c in self.changes if c.deleted]


def check_watchfiles_available() -> None:
    """Raise ImportError with a helpful message if watchfiles is not installed."""
    import importlib

    try:
        importlib.import_module("watchfiles")
    except ImportError:
        raise ImportError(
            "watchfiles is required for watch mode. Install it with: pip install postdown[watch]"
        ) from None


def is_post_file(path: Path, *, posts_dir: Path) -> bool:
    """True for a `<slug>.md` directly inside `posts_dir` (where the loader looks)."""
    if path.suffix != POST_SUFFIX or path.parent != posts_dir:
        return False
    return is_valid_slug(slug_from_path(path))


def collect_post_changes(
    raw_changes: Iterable[tuple[Any, str]], *, posts_dir: Path
) -> tuple[PostChange, ...]:
    """Reduce one watchfiles batch to post changes, sorted by slug.

    When a batch touches a post more than once the last change wins, so a save
    done as delete-then-create reads as an update.
    """
    by_slug: dict[str, PostChange] = {}
    for change, raw_path in raw_changes:
        path = Path(raw_path)
        if not is_post_file(path, posts_dir=posts_dir):
            continue
        slug = slug_from_path(path)
        by_slug[slug] = PostChange(slug=slug, path=path, deleted=int(change) == _DELETED)
    return tuple(by_slug[s] for s in sorted(by_slug))


def describe_changes(changes: Iterable[PostChange]) -> str:
    return ", ".join(f"{c.slug} (deleted)" if c.deleted else c.slug for c in changes)


async def run_watch_loop(
    *,
    changes_iter: AsyncIterator[set[tuple[Any, str]]],
    run_cycle: Callable[[tuple[PostChange, ...]], WatchCycleResult],
    on_event: Callable[[str], None],
    on_cycle_result: Callable[[WatchCycleResult], None],
    on_error: Callable[[BaseException], None],
    posts_dir: Path,
) -> None:
    """Rebuild once per batch that touches at least one post."""
    async for raw_changes in changes_iter:
        changes = collect_post_changes(raw_changes, posts_dir=posts_dir)
        if not changes:
            logger.debug("no post changes in batch of %d", len(raw_changes))
            continue

        on_event(f"[watch] posts changed: {describe_changes(changes)}")
        try:
            result = run_cycle(changes)
        except Exception as exc:
            on_error(exc)
            continue

        status = "ok" if result.build_exit_code == 0 else f"exit {result.build_exit_code}"
        on_event(f"[watch] rebuilt in {result.duration_s:.1f}s ({status})")
        on_cycle_result(result)


def format_watch_cycle_json(result: WatchCycleResult) -> dict[str, object]:
    return {
        "command": "watch",
        "ok": result.build_exit_code == 0,
        "exit_code": result.build_exit_code,
        "duration_s": round(result.duration_s, 2),
        "updated": result.updated,
        "removed": result.removed,
    }


def build_cycle_runner(args: Any) -> Callable[[tuple[PostChange, ...]], WatchCycleResult]:
    """Run a full `build` per cycle; unchanged posts are skipped by digest."""
    from postdown.cli import cmd_build

    def runner(changes: tuple[PostChange, ...]) -> WatchCycleResult:
        t0 = time.monotonic()
        rc = cmd_build(args)
        return WatchCycleResult(
            build_exit_code=rc, duration_s=time.monotonic() - t0, changes=changes
        )

    return runner


def make_watchfiles_iter(posts_dir: Path) -> AsyncIterator[set[tuple[Any, str]]]:
    """Watch `posts_dir` for markdown changes only."""
    import watchfiles  # type: ignore[import-untyped]

    def only_markdown(change: Any, path: str) -> bool:
        return path.endswith(POST_SUFFIX)

    return watchfiles.awatch(posts_dir, watch_filter=only_markdown, debounce=200)
