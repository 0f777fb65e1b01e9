from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from postdown.emitter import RenderOptions
from postdown.render import render, render_fragment


def _package_version() -> str:
    try:
        return version("postdown")
    except PackageNotFoundError:
        # Running from a source checkout, or otherwise not installed.
        return "0.0.0"


__version__ = _package_version()

__all__ = ["RenderOptions", "__version__", "render", "render_fragment"]
