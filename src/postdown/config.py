"""Project configuration loading for Postdown.

Reads `postdown.toml`, applies defaults and performs light validation. Nothing
here touches the posts themselves.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from postdown.emitter import RenderOptions
from postdown.errors import PostdownConfigError
from postdown.render import is_valid_tag_name

CONFIG_FILENAME = "postdown.toml"


@dataclass(frozen=True)
class PathsConfig:
    posts_dir: str
    out_dir: str


@dataclass(frozen=True)
class RenderConfig:
    external_links: bool
    code_language_class: bool
    wrapper_tag: str
    css_class: str

    def to_options(self) -> RenderOptions:
        return RenderOptions(
            external_links=self.external_links,
            code_language_class=self.code_language_class,
        )


@dataclass(frozen=True)
class BuildConfig:
    jobs: int


@dataclass(frozen=True)
class PostdownConfig:
    version: int
    paths: PathsConfig
    render: RenderConfig
    build: BuildConfig


def find_project_root(start: Path) -> Path:
    """Walk upward from `start` (file or directory) looking for `postdown.toml`."""

    cur = start
    try:
        if cur.is_file():
            cur = cur.parent
    except OSError:
        cur = cur.parent

    cur = cur.resolve()
    while True:
        if (cur / CONFIG_FILENAME).is_file():
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent

    raise PostdownConfigError(
        f"Could not find {CONFIG_FILENAME} by walking upward from start path."
    )


def _as_table(value: Any, *, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise PostdownConfigError(f"Expected [{name}] to be a table.")
    return value


def _as_bool(value: Any, *, name: str) -> bool:
    if not isinstance(value, bool):
        raise PostdownConfigError(f"Expected {name} to be a boolean.")
    return value


def _as_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise PostdownConfigError(f"Expected {name} to be an integer.")
    return value


def _as_str(value: Any, *, name: str) -> str:
    if not isinstance(value, str):
        raise PostdownConfigError(f"Expected {name} to be a string.")
    return value


def _get(table: dict[str, Any], key: str, default: Any, conv: Any, *, name: str) -> Any:
    if key in table:
        return conv(table[key], name=name)
    return default


def load_config(*, root: Path | None = None, config_path: Path | None = None) -> PostdownConfig:
    """Load and validate `postdown.toml`.

    If neither `root` nor `config_path` is given, the project root is found by
    walking upward from the current working directory.
    """

    if config_path is None:
        if root is None:
            root = find_project_root(Path.cwd())
        config_path = root / CONFIG_FILENAME

    try:
        raw = config_path.read_bytes()
    except FileNotFoundError as e:
        raise PostdownConfigError(f"Missing {CONFIG_FILENAME} at: {config_path}") from e
    except OSError as e:
        raise PostdownConfigError(f"Failed reading config file: {config_path}") from e

    try:
        data = tomllib.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise PostdownConfigError(f"Config is not valid UTF-8: {config_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise PostdownConfigError(f"Invalid TOML in {config_path}: {e}") from e

    version = data.get("version", None)
    if version is None:
        raise PostdownConfigError(f"Missing required `version = 1` in {CONFIG_FILENAME}.")
    version_i = _as_int(version, name="version")
    if version_i != 1:
        raise PostdownConfigError(f"Unsupported config version: {version_i} (expected 1).")

    paths_tbl = _as_table(data.get("paths"), name="paths")
    render_tbl = _as_table(data.get("render"), name="render")
    build_tbl = _as_table(data.get("build"), name="build")

    posts_dir = _get(paths_tbl, "posts_dir", "content/blog", _as_str, name="paths.posts_dir")
    out_dir = _get(paths_tbl, "out_dir", "build/posts", _as_str, name="paths.out_dir")

    external_links = _get(
        render_tbl, "external_links", True, _as_bool, name="render.external_links"
    )
    code_language_class = _get(
        render_tbl, "code_language_class", True, _as_bool, name="render.code_language_class"
    )
    wrapper_tag = _get(render_tbl, "wrapper_tag", "div", _as_str, name="render.wrapper_tag")
    css_class = _get(render_tbl, "css_class", "prose-custom", _as_str, name="render.css_class")

    jobs = _get(build_tbl, "jobs", 4, _as_int, name="build.jobs")

    # Validation
    if not posts_dir or not out_dir:
        raise PostdownConfigError("Invalid config: paths.posts_dir and paths.out_dir must be set.")

    if not is_valid_tag_name(wrapper_tag):
        raise PostdownConfigError(
            f"Invalid config: render.wrapper_tag {wrapper_tag!r} is not a tag name."
        )

    if jobs < 1:
        raise PostdownConfigError("Invalid config: build.jobs must be >= 1.")

    return PostdownConfig(
        version=version_i,
        paths=PathsConfig(posts_dir=posts_dir, out_dir=out_dir),
        render=RenderConfig(
            external_links=external_links,
            code_language_class=code_language_class,
            wrapper_tag=wrapper_tag,
            css_class=css_class,
        ),
        build=BuildConfig(jobs=jobs),
    )
