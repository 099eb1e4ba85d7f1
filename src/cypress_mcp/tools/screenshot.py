"""Screenshot metadata lookup."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel

from cypress_mcp.constants import SCREENSHOT_EXTENSIONS
from cypress_mcp.security.errors import InvalidTargetError, NotFoundError
from cypress_mcp.security.paths import resolve_contained

__all__ = ["ScreenshotInfo", "get_screenshot"]


class ScreenshotInfo(BaseModel):
    path: str
    exists: bool
    size_bytes: int | None


def get_screenshot(project_root: Path, path: str) -> ScreenshotInfo:
    """Report whether a screenshot exists and how large it is.

    ``path`` is usually the absolute path recorded in the last-run results.
    Only image files inside the project root can be looked up, so the tool
    cannot be used as an existence oracle for arbitrary files.

    Raises:
        InvalidTargetError: Not an image file, or not a regular file
        TraversalError: The path is outside the project root
    """
    if not path.lower().endswith(SCREENSHOT_EXTENSIONS):
        raise InvalidTargetError(
            "Only image files are permitted: " + ", ".join(SCREENSHOT_EXTENSIONS)
        )

    candidate = path
    if os.path.isabs(path):
        base = os.path.abspath(project_root)
        # Recorded paths use the root as given, which may differ from its realpath
        if path.startswith(base + os.sep):
            candidate = os.path.relpath(path, base)

    try:
        resolved = resolve_contained(project_root, candidate)
    except NotFoundError:
        return ScreenshotInfo(path=path, exists=False, size_bytes=None)
    if not resolved.is_file():
        raise InvalidTargetError(f"Not a file: {path}")
    return ScreenshotInfo(path=path, exists=True, size_bytes=resolved.stat().st_size)
