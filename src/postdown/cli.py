from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from postdown import __version__
from postdown.diagnostics import format_build_failures, format_error_with_hint
from postdown.emitter import RenderOptions
from postdown.errors import PostdownBuildError, PostdownConfigError, PostdownPostError
from postdown.progress import ProgressBar

if TYPE_CHECKING:  # pragma: no cover
    from postdown.builder import FragmentSettings
    from postdown.config import PostdownConfig


EXIT_OK = 0
EXIT_CONFIG_OR_USAGE = 2
EXIT_BUILD_FAILURE = 3


def _add_project_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--root",
        type=str,
        default=None,
        help="Project root (defaults to searching upward from cwd for postdown.toml).",
    )
    p.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to postdown.toml (defaults to <root>/postdown.toml).",
    )
    p.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Emit machine-readable JSON on stdout.",
    )


def _add_build_flags(p: argparse.ArgumentParser) -> None:
    _add_project_flags(p)
    p.add_argument("--jobs", type=int, default=None, help="Concurrency override.")
    p.add_argument("--force", action="store_true", help="Re-render every post.")
    p.add_argument(
        "--target",
        action="append",
        default=[],
        help="Restrict rendering to SLUG (repeatable).",
    )
    p.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress bar.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="postdown")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging on stderr."
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    render_p = subparsers.add_parser("render", help="Render one markdown file to HTML.")
    render_p.add_argument(
        "file", nargs="?", default="-", help="Markdown file to render ('-' for stdin)."
    )
    render_p.add_argument(
        "--fragment", action="store_true", help="Wrap the output in a single element."
    )
    render_p.add_argument("--wrapper-tag", default="div", help="Element used by --fragment.")
    render_p.add_argument(
        "--class", dest="css_class", default=None, help="Class attribute used by --fragment."
    )
    render_p.add_argument(
        "--no-external-links",
        action="store_true",
        help='Do not add target="_blank" to links.',
    )
    render_p.add_argument(
        "--no-language-class",
        action="store_true",
        help="Do not add language-* classes to fenced code blocks.",
    )

    build_p = subparsers.add_parser("build", help="Render all stale posts and write the index.")
    _add_build_flags(build_p)

    list_p = subparsers.add_parser("list", help="List posts, newest first.")
    _add_project_flags(list_p)

    watch_p = subparsers.add_parser("watch", help="Build, then rebuild on post changes.")
    _add_build_flags(watch_p)

    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def _is_json_mode(args: argparse.Namespace) -> bool:
    return bool(getattr(args, "json_output", False))


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


def _emit_json(payload: dict[str, object]) -> None:
    print(json.dumps(payload, sort_keys=True))


def _report_error(e: BaseException, *, command: str, json_mode: bool) -> None:
    if json_mode:
        _emit_json({"command": command, "ok": False, "error": (str(e) or repr(e)).strip()})
    else:
        _eprint(format_error_with_hint(e))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_config(args: argparse.Namespace) -> tuple[Path, PostdownConfig]:
    from postdown.config import find_project_root, load_config

    root = Path(args.root).resolve() if args.root else None
    config_path = Path(args.config).resolve() if args.config else None
    if root is None and config_path is None:
        root = find_project_root(Path.cwd())
    elif root is None and config_path is not None:
        root = config_path.parent

    assert root is not None
    cfg = load_config(root=root, config_path=config_path)
    return root, cfg


def _fragment_settings(cfg: PostdownConfig) -> FragmentSettings:
    from postdown.builder import FragmentSettings

    return FragmentSettings(
        options=cfg.render.to_options(),
        wrapper_tag=cfg.render.wrapper_tag,
        css_class=cfg.render.css_class,
    )


def cmd_render(args: argparse.Namespace) -> int:
    from postdown.render import render, render_fragment

    try:
        if args.file == "-":
            source = sys.stdin.read()
        else:
            source = Path(args.file).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        _eprint(format_error_with_hint(e))
        return EXIT_CONFIG_OR_USAGE

    options = RenderOptions(
        external_links=not args.no_external_links,
        code_language_class=not args.no_language_class,
    )
    if args.fragment:
        try:
            out = render_fragment(
                source,
                wrapper_tag=args.wrapper_tag,
                css_class=args.css_class,
                options=options,
            )
        except ValueError as e:
            _eprint(format_error_with_hint(e))
            return EXIT_CONFIG_OR_USAGE
    else:
        out = render(source, options)

    if out:
        print(out)
    return EXIT_OK


def cmd_build(args: argparse.Namespace) -> int:
    json_mode = _is_json_mode(args)
    try:
        from postdown import builder
        from postdown.posts import load_posts

        root, cfg = _load_config(args)
        posts_dir = root / cfg.paths.posts_dir
        out_dir = root / cfg.paths.out_dir

        posts = load_posts(posts_dir)
        settings = _fragment_settings(cfg)
        stale = builder.detect_stale_posts(
            out_dir=out_dir,
            posts=posts,
            settings=settings,
            force=bool(args.force),
        )

        targets = set(args.target or [])
        if targets:
            unknown = targets - {p.slug for p in posts}
            if unknown:
                raise PostdownConfigError(f"Unknown post slug(s): {', '.join(sorted(unknown))}")
            stale &= targets

        progress = None
        if stale and (not bool(args.no_progress)) and (not json_mode) and sys.stderr.isatty():
            progress = ProgressBar(
                label="render", total=len(stale), enabled=True, stream=sys.stderr
            )

        jobs = int(args.jobs) if args.jobs is not None else int(cfg.build.jobs)
        report = asyncio.run(
            builder.run_build(
                out_dir=out_dir,
                posts=posts,
                settings=settings,
                stale=stale,
                jobs=jobs,
                progress=progress,
            )
        )
        builder.write_index(out_dir, posts)
    except PostdownConfigError as e:
        _report_error(e, command="build", json_mode=json_mode)
        return EXIT_CONFIG_OR_USAGE
    except (PostdownPostError, PostdownBuildError, OSError) as e:
        _report_error(e, command="build", json_mode=json_mode)
        return EXIT_BUILD_FAILURE

    if json_mode:
        _emit_json(
            {
                "command": "build",
                "ok": not report.failed,
                "rendered": sorted(report.rendered),
                "skipped": sorted(report.skipped),
                "failed": {k: report.failed[k] for k in sorted(report.failed)},
            }
        )
    elif report.failed:
        _eprint(format_build_failures(report.failed))

    return EXIT_BUILD_FAILURE if report.failed else EXIT_OK


def cmd_list(args: argparse.Namespace) -> int:
    from postdown.posts import format_post_date, load_posts

    json_mode = _is_json_mode(args)
    try:
        root, cfg = _load_config(args)
        posts = load_posts(root / cfg.paths.posts_dir)
    except (PostdownConfigError, PostdownPostError) as e:
        _report_error(e, command="list", json_mode=json_mode)
        return EXIT_CONFIG_OR_USAGE

    if json_mode:
        _emit_json({"command": "list", "ok": True, "posts": [p.metadata() for p in posts]})
        return EXIT_OK

    for p in posts:
        date = format_post_date(p.date) if p.date else "-"
        print(f"{date:<14} {p.slug:<32} {p.title}")
    return EXIT_OK


def cmd_watch(args: argparse.Namespace) -> int:
    from postdown import watcher

    json_mode = _is_json_mode(args)
    try:
        watcher.check_watchfiles_available()
    except ImportError as e:
        _report_error(e, command="watch", json_mode=json_mode)
        return EXIT_CONFIG_OR_USAGE

    try:
        root, cfg = _load_config(args)
    except PostdownConfigError as e:
        _report_error(e, command="watch", json_mode=json_mode)
        return EXIT_CONFIG_OR_USAGE

    posts_dir = (root / cfg.paths.posts_dir).resolve()
    if not posts_dir.is_dir():
        e = PostdownConfigError(f"paths.posts_dir does not exist: {posts_dir}")
        _report_error(e, command="watch", json_mode=json_mode)
        return EXIT_CONFIG_OR_USAGE

    # Cycle results are reported by the watch loop, not by each build.
    build_args = argparse.Namespace(**{**vars(args), "json_output": False})
    run_cycle = watcher.build_cycle_runner(build_args)

    def on_cycle_result(result: watcher.WatchCycleResult) -> None:
        if json_mode:
            _emit_json(watcher.format_watch_cycle_json(result))

    def on_error(exc: BaseException) -> None:
        _eprint(format_error_with_hint(exc))

    cmd_build(build_args)
    _eprint(f"[watch] watching {posts_dir}")
    try:
        asyncio.run(
            watcher.run_watch_loop(
                changes_iter=watcher.make_watchfiles_iter(posts_dir),
                run_cycle=run_cycle,
                on_event=_eprint,
                on_cycle_result=on_cycle_result,
                on_error=on_error,
                posts_dir=posts_dir,
            )
        )
    except KeyboardInterrupt:
        pass
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    try:
        args = parse_args(list(sys.argv[1:] if argv is None else argv))
    except SystemExit as e:
        # argparse uses SystemExit for --help/--version and parse errors.
        code = e.code
        return int(code) if isinstance(code, int) else EXIT_CONFIG_OR_USAGE

    _configure_logging(bool(args.verbose))

    if args.command == "render":
        return cmd_render(args)
    if args.command == "build":
        return cmd_build(args)
    if args.command == "list":
        return cmd_list(args)
    if args.command == "watch":
        return cmd_watch(args)

    return EXIT_CONFIG_OR_USAGE


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
