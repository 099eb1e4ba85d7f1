"""Audit trail for tool calls, spec runs and rejected HTTP requests.

Events go to the ``cypress_mcp.audit`` logger as one line each::

    event=tool_called {"tool": "read_spec"}

Detail values are redacted and string values are cut to a fixed length, so
the audit log never becomes a second copy of secrets it is meant to guard.
"""

from __future__ import annotations

import json
import logging

from cypress_mcp.security.redact import redact_secrets

__all__ = ["AUDIT_LOGGER_NAME", "MAX_DETAIL_CHARS", "audit_event"]

AUDIT_LOGGER_NAME = "cypress_mcp.audit"
MAX_DETAIL_CHARS = 200

logger = logging.getLogger(AUDIT_LOGGER_NAME)


def _clean(value: str | int | float | bool | None) -> str | int | float | bool | None:
    if isinstance(value, str):
        return redact_secrets(value)[:MAX_DETAIL_CHARS]
    return value


def audit_event(event: str, **details: str | int | float | bool | None) -> None:
    """Record a single audit event.

    Args:
        event: Event name, e.g. ``tool_called`` or ``http_auth_rejected``
        **details: Scalar details; strings are redacted and truncated
    """
    payload = {key: _clean(value) for key, value in details.items()}
    logger.info("event=%s %s", event, json.dumps(payload, sort_keys=True))
