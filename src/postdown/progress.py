from __future__ import annotations

import sys
import time
from dataclasses import dataclass, field
from shutil import get_terminal_size


@dataclass(slots=True)
class ProgressBar:
    """Single-line terminal progress for a batch render.

    The line shows how many posts are written and which post finished last;
    `finish` replaces it with a summary naming any posts that failed. Redraws
    are throttled to `min_interval_s`, and a stream write error turns the bar
    off instead of failing the build.
    """

    label: str
    total: int
    enabled: bool = True
    stream: object = sys.stderr
    width: int = 20
    min_interval_s: float = 0.1
    rendered: list[str] = field(default_factory=list, init=False)
    failed: list[str] = field(default_factory=list, init=False)
    _last_draw: float = field(default=0.0, init=False, repr=False)
    _finished: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        self._draw(self._bar_line(""), force=True)

    @property
    def done(self) -> int:
        return len(self.rendered) + len(self.failed)

    def advance(self, slug: str, *, ok: bool) -> None:
        if self._finished:
            return
        (self.rendered if ok else self.failed).append(slug)
        self._draw(self._bar_line(slug))

    def finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._draw(self.summary(), force=True)
        self._write("\n")

    def summary(self) -> str:
        line = f"{self.label}: {len(self.rendered)}/{self.total} post(s) rendered"
        if self.failed:
            line += f", {len(self.failed)} failed ({', '.join(sorted(self.failed))})"
        return line

    def _bar_line(self, last: str) -> str:
        total = max(0, self.total)
        frac = min(1.0, self.done / total) if total else 1.0
        filled = round(self.width * frac)
        bar = "#" * filled + "." * (self.width - filled)
        line = f"{self.label} [{bar}] {self.done}/{total}"
        if self.failed:
            line += f" ({len(self.failed)} failed)"
        if last:
            line += f"  {last}"
        return line

    def _write(self, s: str) -> None:
        if not self.enabled:
            return
        try:
            self.stream.write(s)  # type: ignore[attr-defined]
            self.stream.flush()  # type: ignore[attr-defined]
        except Exception:
            self.enabled = False

    def _draw(self, line: str, *, force: bool = False) -> None:
        if not self.enabled:
            return
        now = time.monotonic()
        if not force and (now - self._last_draw) < self.min_interval_s:
            return
        self._last_draw = now
        cols = get_terminal_size(fallback=(80, 20)).columns
        # Pad so a shorter line fully covers the previous one.
        self._write("\r" + line[: max(0, cols - 1)].ljust(max(0, cols - 1)))
