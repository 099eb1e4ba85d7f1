"""Error taxonomy for the mediation layer.

Every filesystem and process failure is mapped to one of these types before
it reaches the dispatch layer. Messages never carry resolved internal paths;
``scrub_paths`` is applied to anything that still might.
"""

from __future__ import annotations

import re

__all__ = [
    "InvalidTargetError",
    "MalformedUpstreamDataError",
    "MediationError",
    "NotFoundError",
    "ResourceBusyError",
    "RunTimeoutError",
    "SpawnFailureError",
    "TraversalError",
    "error_message",
    "scrub_paths",
]


class MediationError(Exception):
    """Base class for failures mapped at a component boundary.

    Attributes:
        slot_released: True when the process lifecycle has already freed the
            run slot, so the admitting caller must not free it again.
    """

    slot_released: bool = False


class TraversalError(MediationError):
    """A candidate path escapes the project root, lexically or via symlink."""

    def __init__(self, message: str = "Access denied: path must be within the project root"):
        super().__init__(message)


class NotFoundError(MediationError):
    """The requested file does not exist."""

    def __init__(self, candidate: str, kind: str = "File"):
        self.candidate = candidate
        super().__init__(f"{kind} not found: {candidate}")


class InvalidTargetError(MediationError):
    """The target exists but is not acceptable (wrong type, symlink, absolute)."""


class ResourceBusyError(MediationError):
    """Another spec run is in flight."""

    def __init__(self) -> None:
        super().__init__(
            "Another spec run is already in progress. Wait for it to complete first."
        )


class RunTimeoutError(MediationError):
    """The run exceeded its wall-clock limit and the process has since exited."""

    slot_released = True

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"run_spec timed out after {timeout:g}s")


class SpawnFailureError(MediationError):
    """The runner binary could not be started."""

    slot_released = True


class MalformedUpstreamDataError(MediationError):
    """An artifact written by the test run is corrupt, oversized, or misshapen."""


# Absolute POSIX paths (two or more segments) and Windows drive paths
_PATH_RE = re.compile(r"(?<![\w:/.])(?:/[^\s/'\"<>:]+){2,}/?|\b[A-Za-z]:\\[^\s'\"<>]+")


def scrub_paths(message: str) -> str:
    """Replace absolute-path-shaped substrings with ``<path>``.

    >>> scrub_paths("EACCES: permission denied, open '/home/me/proj/a.cy.ts'")
    "EACCES: permission denied, open '<path>'"
    """
    return _PATH_RE.sub("<path>", message)


def error_message(exc: BaseException) -> str:
    """Human-readable message for any exception."""
    text = str(exc)
    return text if text else type(exc).__name__
