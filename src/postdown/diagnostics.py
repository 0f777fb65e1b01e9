"""Error formatting and actionable hints for Postdown CLI output.

Depends only on the error hierarchy so the CLI can import it cheaply.
"""

from __future__ import annotations

from postdown.errors import PostdownBuildError, PostdownConfigError, PostdownPostError


def format_build_failures(failed: dict[str, list[str]]) -> str:
    """Format per-post build failures into a human-readable stderr summary."""
    if not failed:
        return ""
    lines = [f"Build failed for {len(failed)} post(s):\n"]
    for slug in sorted(failed):
        lines.append(f"  {slug}:")
        for err in failed[slug]:
            lines.append(f"    - {err}")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def format_hint(exc: BaseException) -> str | None:
    """Return an actionable hint for a known error, or None."""
    msg = str(exc)

    if isinstance(exc, PostdownConfigError):
        if "postdown.toml" in msg and "find" in msg.lower():
            return "create a postdown.toml with `version = 1` in your project root"
        if "version" in msg:
            return "set `version = 1` at the top of postdown.toml"
        return None

    if isinstance(exc, PostdownPostError):
        return "check the post's frontmatter: it must be a YAML mapping between `---` lines"

    if isinstance(exc, PostdownBuildError):
        return "check that paths.out_dir is writable and post file names are plain slugs"

    if isinstance(exc, ImportError) and "watchfiles" in msg:
        return "install the watch extra: pip install postdown[watch]"

    return None


def format_error_with_hint(exc: BaseException) -> str:
    """Format error message + optional hint for stderr output."""
    msg = (str(exc) or repr(exc)).strip()
    result = f"error: {msg}"
    hint = format_hint(exc)
    if hint:
        result += f"\nhint: {hint}"
    return result
