"""Path-string helpers that honor the host's separator convention."""

from __future__ import annotations

import re
from pathlib import PurePath, PurePosixPath, PureWindowsPath

_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:")


def pure_path_for(path: str) -> PurePath:
    """Pick Windows semantics for drive-letter or backslash paths, POSIX otherwise."""
    if _WINDOWS_DRIVE.match(path) or "\\" in path:
        return PureWindowsPath(path)
    return PurePosixPath(path)


def parent_path(path: str) -> str | None:
    """Return the parent directory of ``path`` or ``None`` at a root.

    ``"/home/me"`` -> ``"/home"``, ``"/home"`` -> ``"/"``, ``"/"`` -> ``None``,
    ``"C:\\Users"`` -> ``"C:\\"``.
    """
    if not path:
        return None
    pure = pure_path_for(path)
    parent = pure.parent
    if parent == pure:
        return None
    return str(parent)


__all__ = [
    "pure_path_for",
    "parent_path",
]
