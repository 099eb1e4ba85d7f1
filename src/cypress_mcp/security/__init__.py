"""Trust-boundary primitives: containment, redaction, envelope, error taxonomy."""

from cypress_mcp.security.envelope import ENVELOPE_TAG, wrap_untrusted
from cypress_mcp.security.errors import (
    InvalidTargetError,
    MalformedUpstreamDataError,
    MediationError,
    NotFoundError,
    ResourceBusyError,
    RunTimeoutError,
    SpawnFailureError,
    TraversalError,
    error_message,
    scrub_paths,
)
from cypress_mcp.security.paths import (
    ResolvedPath,
    canonical_root,
    contained_join,
    is_contained,
    resolve_contained,
)
from cypress_mcp.security.redact import redact_secrets, redact_tree

__all__ = [
    "ENVELOPE_TAG",
    "InvalidTargetError",
    "MalformedUpstreamDataError",
    "MediationError",
    "NotFoundError",
    "ResolvedPath",
    "ResourceBusyError",
    "RunTimeoutError",
    "SpawnFailureError",
    "TraversalError",
    "canonical_root",
    "contained_join",
    "error_message",
    "is_contained",
    "redact_secrets",
    "redact_tree",
    "resolve_contained",
    "scrub_paths",
    "wrap_untrusted",
]
