"""Spec discovery and reading."""

from __future__ import annotations

import logging
import os
from fnmatch import fnmatchcase
from pathlib import Path

from cypress_mcp.constants import (
    DEFAULT_SPEC_GLOBS,
    IGNORED_DIRS,
    MAX_SPEC_BYTES,
    SPEC_EXTENSIONS,
)
from cypress_mcp.security.errors import InvalidTargetError, NotFoundError
from cypress_mcp.security.paths import canonical_root, resolve_contained

__all__ = ["glob_match", "list_specs", "read_spec"]

logger = logging.getLogger(__name__)


def glob_match(path: str, pattern: str) -> bool:
    """Match a relative POSIX path against a glob with ``**`` support.

    ``*`` and ``?`` never cross a ``/``, ``**`` spans any number of segments,
    and dot-files only match segments that start with a dot themselves.

    >>> glob_match("cypress/e2e/login.cy.ts", "**/*.cy.ts")
    True
    >>> glob_match("cypress/e2e/login.cy.ts", "*.cy.ts")
    False
    """
    parts = path.split("/")
    segments = [s for s in pattern.split("/") if s not in ("", ".")]
    return _match(parts, segments)


def _match(parts: list[str], segments: list[str]) -> bool:
    if not segments:
        return not parts
    head, rest = segments[0], segments[1:]
    if head == "**":
        for i in range(len(parts) + 1):
            if _match(parts[i:], rest):
                return True
            if i < len(parts) and parts[i].startswith("."):
                return False
        return False
    if not parts:
        return False
    if parts[0].startswith(".") and not head.startswith("."):
        return False
    return fnmatchcase(parts[0], head) and _match(parts[1:], rest)


def list_specs(project_root: Path, pattern: str | None = None) -> list[str]:
    """List spec files under the project root.

    Directory symlinks are never followed and ``node_modules``, ``dist`` and
    ``.git`` are skipped. Whatever the pattern, only files with a spec
    extension are returned, so a broad glob cannot enumerate other files.

    Args:
        project_root: Project directory
        pattern: Relative glob; defaults to every spec file

    Returns:
        Sorted project-relative POSIX paths
    """
    root = canonical_root(project_root)
    patterns = (pattern,) if pattern else DEFAULT_SPEC_GLOBS
    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        dirnames[:] = [d for d in dirnames if d not in IGNORED_DIRS]
        rel_dir = Path(dirpath).relative_to(root)
        for name in filenames:
            if not name.endswith(SPEC_EXTENSIONS):
                continue
            rel = (rel_dir / name).as_posix()
            if any(glob_match(rel, p) for p in patterns):
                found.append(rel)
    logger.debug("list_specs(%r) matched %d files", pattern, len(found))
    return sorted(found)


def read_spec(project_root: Path, path: str) -> str:
    """Read a spec file's source.

    Files over the size ceiling are not read at all; a short notice is
    returned in their place.

    Raises:
        TraversalError: The path escapes the project root
        NotFoundError: No such file
        InvalidTargetError: Not a regular file, or not a spec file
    """
    try:
        resolved = resolve_contained(project_root, path)
    except NotFoundError:
        raise NotFoundError(path, kind="Spec file") from None
    # Checked on the resolved name: a spec-named symlink to another file is refused
    if not resolved.name.endswith(SPEC_EXTENSIONS):
        raise InvalidTargetError(
            "File extension not allowed. Only Cypress spec files are permitted: "
            + ", ".join(SPEC_EXTENSIONS)
        )
    if not resolved.is_file():
        raise InvalidTargetError(f"Not a file: {path}")

    size = resolved.stat().st_size
    if size > MAX_SPEC_BYTES:
        return f"/* File too large ({size} bytes). Maximum: {MAX_SPEC_BYTES} bytes. */"

    try:
        raw = resolved.read_bytes()
    except FileNotFoundError:
        raise NotFoundError(path, kind="Spec file") from None
    except PermissionError:
        raise InvalidTargetError(f"Permission denied reading: {path}") from None

    # The file may have grown since stat()
    if len(raw) > MAX_SPEC_BYTES:
        text = raw[:MAX_SPEC_BYTES].decode("utf-8", errors="replace")
        return f"{text}\n\n/* ... file truncated at {MAX_SPEC_BYTES} bytes ... */"
    return raw.decode("utf-8", errors="replace")
