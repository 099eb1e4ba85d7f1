"""Project-root containment for agent-supplied paths.

Prevents tools from touching files outside the project directory through
path traversal (e.g., ../../etc/passwd), a symlinked project root, or a
symlinked leaf whose target escapes the root.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import NewType

from cypress_mcp.security.errors import NotFoundError, TraversalError

__all__ = [
    "ResolvedPath",
    "canonical_root",
    "contained_join",
    "is_contained",
    "resolve_contained",
]

ResolvedPath = NewType("ResolvedPath", Path)
"""Symlink-free absolute path proven to lie strictly inside the project root."""


def canonical_root(root: str | os.PathLike[str]) -> Path:
    """Resolve symlinks in the root itself.

    A root reached through a symlink (``/tmp`` -> ``/private/tmp`` on macOS)
    would otherwise reject every real path beneath it.

    Raises:
        FileNotFoundError: If the root does not exist.
    """
    return Path(os.path.realpath(os.path.abspath(root), strict=True))


def is_contained(root: Path, path: str | os.PathLike[str]) -> bool:
    """True if ``path`` lies strictly under ``root`` (root itself excluded)."""
    root_str = str(root)
    prefix = root_str if root_str.endswith(os.sep) else root_str + os.sep
    return os.fspath(path).startswith(prefix)


def contained_join(root: Path, candidate: str) -> Path:
    """Lexically join ``candidate`` onto ``root`` and check containment.

    No filesystem access happens here, so the check gives a precise error for
    obviously invalid candidates even when nothing exists at the target.

    Args:
        root: Canonical project root (see ``canonical_root``)
        candidate: Caller-supplied path, normally relative

    Returns:
        Normalized absolute path under ``root``

    Raises:
        TraversalError: If the joined path is not strictly under ``root``
    """
    if "\x00" in candidate:
        raise TraversalError()
    joined = Path(os.path.normpath(os.path.join(root, candidate)))
    if not is_contained(root, joined):
        raise TraversalError()
    return joined


def resolve_contained(root: str | os.PathLike[str], candidate: str) -> ResolvedPath:
    """Resolve ``candidate`` against ``root`` and prove it cannot escape.

    Algorithm:
    1. Canonicalize the root (resolves symlinks in the root itself)
    2. Join lexically and reject anything not strictly under root + separator
    3. Resolve symlinks on the joined path (strict: the target must exist)
    4. Re-check the resolved path against root + separator
    5. Return the resolved path

    Args:
        root: Project root directory
        candidate: Relative path supplied by the agent

    Returns:
        Symlink-resolved absolute path inside the root

    Raises:
        TraversalError: If the path escapes the root, lexically or via symlink
        NotFoundError: If nothing exists at the path
        OSError: Other filesystem failures (permission denied, loops) propagate

    Examples:
        >>> import tempfile
        >>> with tempfile.TemporaryDirectory() as tmpdir:
        ...     try:
        ...         resolve_contained(tmpdir, "../../etc/passwd")
        ...     except TraversalError:
        ...         print("TraversalError raised")
        TraversalError raised
    """
    real_root = canonical_root(root)
    joined = contained_join(real_root, candidate)
    try:
        real = os.path.realpath(joined, strict=True)
    except FileNotFoundError:
        raise NotFoundError(candidate) from None
    if not is_contained(real_root, real):
        raise TraversalError("Access denied: path escapes the project root via symlink")
    return ResolvedPath(Path(real))
