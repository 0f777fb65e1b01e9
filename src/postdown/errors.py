"""Postdown exception hierarchy.

The renderer never raises for document content; these cover the layers around
it (config files, post files on disk, batch builds).
"""


class PostdownError(Exception):
    """Base exception for all Postdown errors."""


class PostdownConfigError(PostdownError):
    """Raised for invalid or missing project configuration."""


class PostdownPostError(PostdownError):
    """Raised when a post file cannot be read or its frontmatter is invalid."""


class PostdownBuildError(PostdownError):
    """Raised when rendered output cannot be written."""
