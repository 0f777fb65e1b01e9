"""Tests for postdown.diagnostics: error formatting and actionable hints."""

from __future__ import annotations

from postdown.diagnostics import format_build_failures, format_error_with_hint, format_hint
from postdown.errors import (
    PostdownBuildError,
    PostdownConfigError,
    PostdownError,
    PostdownPostError,
)


def test_format_build_failures_empty() -> None:
    assert format_build_failures({}) == ""


def test_format_build_failures_sorted_by_slug() -> None:
    result = format_build_failures(
        {
            "zeta": ["Permission denied"],
            "alpha": ["Refusing to write outside out_dir.", "disk full"],
        }
    )
    assert result.startswith("Build failed for 2 post(s):")
    assert result.index("alpha") < result.index("zeta")
    assert "    - disk full" in result
    assert result.endswith("\n")


def test_hint_for_missing_config() -> None:
    exc = PostdownConfigError("Could not find postdown.toml by walking upward from start path.")
    assert "create a postdown.toml" in (format_hint(exc) or "")


def test_hint_for_version() -> None:
    exc = PostdownConfigError("Unsupported config version: 2 (expected 1).")
    assert "version = 1" in (format_hint(exc) or "")


def test_hint_for_post_and_build_errors() -> None:
    assert "frontmatter" in (format_hint(PostdownPostError("bad.md: oops")) or "")
    assert "out_dir" in (format_hint(PostdownBuildError("nope")) or "")


def test_hint_for_missing_watchfiles() -> None:
    exc = ImportError("watchfiles is required for watch mode.")
    assert format_hint(exc) == "install the watch extra: pip install postdown[watch]"


def test_no_hint_for_unknown_errors() -> None:
    assert format_hint(PostdownError("generic")) is None
    assert format_hint(ValueError("x")) is None


def test_format_error_with_hint() -> None:
    out = format_error_with_hint(PostdownPostError("bad.md: Invalid YAML frontmatter"))
    lines = out.splitlines()
    assert lines[0] == "error: bad.md: Invalid YAML frontmatter"
    assert lines[1].startswith("hint: ")
    assert format_error_with_hint(ValueError("plain")) == "error: plain"
