"""Repository path rules.

Paths are absolute, ``/``-separated, with no trailing slash (except the
root itself) and no empty, ``.`` or ``..`` segments. Segment names may
carry a namespace prefix (``jcr:content``).
"""

from __future__ import annotations

import re

from repoinit.domain.errors import InvalidPathError

ROOT_PATH = "/"

_SEGMENT_RE = re.compile(r"^[^/\[\]|*\s:][^/\[\]|*]*$")


def normalize_path(path: str) -> str:
    """Validate *path* and return its canonical form.

    Collapses duplicate slashes and strips a trailing slash.

    Raises:
        InvalidPathError: If the path is relative or has an invalid segment.
    """
    if not path or not path.startswith("/"):
        msg = f"Path must be absolute: {path!r}"
        raise InvalidPathError(msg, path=path)

    segments = [s for s in path.split("/") if s]
    for segment in segments:
        if segment in (".", "..") or _SEGMENT_RE.match(segment) is None:
            msg = f"Invalid path segment {segment!r} in {path!r}"
            raise InvalidPathError(msg, path=path)
    return "/" + "/".join(segments)


def parent_path(path: str) -> str | None:
    """Return the parent of *path*, or None for the root."""
    if path == ROOT_PATH:
        return None
    head, _, _ = path.rpartition("/")
    return head or ROOT_PATH


def node_name(path: str) -> str:
    """Return the last segment of *path* (empty string for the root)."""
    return path.rpartition("/")[2]


def ancestors(path: str) -> list[str]:
    """Return all proper ancestors of *path*, root first.

    Examples:
        >>> ancestors("/a/b/c")
        ['/', '/a', '/a/b']
    """
    result: list[str] = []
    current = parent_path(path)
    while current is not None:
        result.append(current)
        current = parent_path(current)
    result.reverse()
    return result


def join_path(base: str, relative: str) -> str:
    """Join *relative* onto *base* and normalize."""
    return normalize_path(f"{base.rstrip('/')}/{relative.strip('/')}")


def is_descendant(path: str, ancestor: str, *, include_self: bool = False) -> bool:
    """Whether *path* lies below *ancestor* in the hierarchy."""
    if path == ancestor:
        return include_self
    if ancestor == ROOT_PATH:
        return path != ROOT_PATH
    return path.startswith(ancestor + "/")
