from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from postdown.builder import (
    BuildReport,
    FragmentSettings,
    detect_stale_posts,
    post_digest,
    render_post,
    run_build,
    write_index,
    write_rendered_post,
)
from postdown.emitter import RenderOptions
from postdown.errors import PostdownBuildError
from postdown.header import extract_source_digest, parse_header
from postdown.posts import Post


def _post(slug: str, content: str = "# Hi\n", date: str = "2026-01-01") -> Post:
    return Post(slug=slug, title=slug.title(), date=date, excerpt="e", content=content)


SETTINGS = FragmentSettings(wrapper_tag="div", css_class="prose-custom")


class FakeProgress:
    def __init__(self) -> None:
        self.advanced: list[tuple[str, bool]] = []
        self.finished = False

    def advance(self, item: str, *, ok: bool) -> None:
        self.advanced.append((item, ok))

    def finish(self) -> None:
        self.finished = True


def test_post_digest_tracks_content_and_settings() -> None:
    base = post_digest(_post("a"), SETTINGS)
    assert base == post_digest(_post("a"), SETTINGS)
    assert base != post_digest(_post("a", content="# Changed\n"), SETTINGS)
    other = FragmentSettings(options=RenderOptions(external_links=False), css_class="prose-custom")
    assert base != post_digest(_post("a"), other)


def test_render_post_uses_fragment_settings() -> None:
    assert render_post(_post("a"), SETTINGS) == '<div class="prose-custom">\n<h1>Hi</h1>\n</div>'
    assert render_post(_post("a"), FragmentSettings()) == "<div>\n<h1>Hi</h1>\n</div>"


def test_write_rendered_post_writes_header_and_html(tmp_path: Path) -> None:
    out = write_rendered_post(out_dir=tmp_path, slug="a", html="<p>x</p>", source_digest="abc")
    assert out == (tmp_path / "a.html").resolve()
    text = out.read_text(encoding="utf-8")
    assert text.endswith("<p>x</p>\n")
    assert parse_header(text)["slug"] == "a"
    assert extract_source_digest(text) == "sha256:abc"
    # No temp files are left behind.
    assert sorted(p.name for p in tmp_path.iterdir()) == ["a.html"]


@pytest.mark.parametrize("slug", ["../escape", "a/b", ".hidden"])
def test_write_rendered_post_rejects_bad_slugs(tmp_path: Path, slug: str) -> None:
    with pytest.raises(PostdownBuildError):
        write_rendered_post(out_dir=tmp_path / "out", slug=slug, html="x", source_digest="d")


def test_detect_stale_posts(tmp_path: Path) -> None:
    a, b = _post("a"), _post("b")
    assert detect_stale_posts(out_dir=tmp_path, posts=[a, b], settings=SETTINGS) == {"a", "b"}

    write_rendered_post(
        out_dir=tmp_path, slug="a", html="<p/>", source_digest=post_digest(a, SETTINGS)
    )
    assert detect_stale_posts(out_dir=tmp_path, posts=[a, b], settings=SETTINGS) == {"b"}

    changed = _post("a", content="new body")
    assert detect_stale_posts(out_dir=tmp_path, posts=[changed], settings=SETTINGS) == {"a"}

    assert detect_stale_posts(
        out_dir=tmp_path, posts=[a, b], settings=SETTINGS, force=True
    ) == {"a", "b"}


def test_hand_written_output_is_stale(tmp_path: Path) -> None:
    (tmp_path / "a.html").write_text("<p>by hand</p>\n", encoding="utf-8")
    assert detect_stale_posts(out_dir=tmp_path, posts=[_post("a")], settings=SETTINGS) == {"a"}


def test_run_build_renders_only_stale_posts(tmp_path: Path) -> None:
    posts = [_post("a"), _post("b", content="- x\n- y"), _post("c")]
    progress = FakeProgress()

    report = asyncio.run(
        run_build(
            out_dir=tmp_path,
            posts=posts,
            settings=SETTINGS,
            stale={"a", "b"},
            jobs=2,
            progress=progress,
        )
    )

    assert report == BuildReport(rendered={"a", "b"}, skipped={"c"}, failed={})
    assert sorted(slug for slug, _ in progress.advanced) == ["a", "b"]
    assert progress.finished is True

    b_html = (tmp_path / "b.html").read_text(encoding="utf-8")
    assert "<ul>\n<li>x</li>\n<li>y</li>\n</ul>" in b_html
    assert not (tmp_path / "c.html").exists()

    # Everything just written is now up to date.
    assert detect_stale_posts(out_dir=tmp_path, posts=posts[:2], settings=SETTINGS) == set()


def test_run_build_collects_failures(tmp_path: Path) -> None:
    posts = [_post("good"), _post("bad name")]
    report = asyncio.run(
        run_build(
            out_dir=tmp_path,
            posts=posts,
            settings=SETTINGS,
            stale={"good", "bad name"},
            jobs=1,
        )
    )
    assert report.rendered == {"good"}
    assert list(report.failed) == ["bad name"]
    assert "invalid slug" in report.failed["bad name"][0]


def test_run_build_keeps_going_after_unexpected_error(tmp_path: Path) -> None:
    # A lone surrogate renders fine but cannot be encoded when the file is written.
    posts = [_post("good", content="hi"), _post("bad", content="x \ud800 y")]
    report = asyncio.run(
        run_build(
            out_dir=tmp_path,
            posts=posts,
            settings=SETTINGS,
            stale={"good", "bad"},
            jobs=1,
        )
    )
    assert report.rendered == {"good"}
    assert list(report.failed) == ["bad"]
    assert "surrogate" in report.failed["bad"][0]
    assert (tmp_path / "good.html").exists()
    assert sorted(p.name for p in tmp_path.iterdir()) == ["good.html"]


def test_run_build_with_nothing_stale(tmp_path: Path) -> None:
    report = asyncio.run(
        run_build(out_dir=tmp_path, posts=[_post("a")], settings=SETTINGS, stale=set())
    )
    assert report == BuildReport(rendered=set(), skipped={"a"}, failed={})


def test_write_index(tmp_path: Path) -> None:
    posts = [_post("new", date="2026-02-01"), _post("old", date="2025-01-01")]
    out = write_index(tmp_path / "out", posts)
    data = json.loads(out.read_text(encoding="utf-8"))
    assert [d["slug"] for d in data] == ["new", "old"]
    assert "content" not in data[0]
