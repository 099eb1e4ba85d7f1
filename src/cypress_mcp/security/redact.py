"""Secret scrubbing for text that flows from the project back to the agent.

The rules form an ordered pipeline compiled once at import. Order matters:
the JSON rule must run before the generic key/value rule, otherwise the
generic rule matches inside ``"password":"..."`` and leaves stray quotes.
"""

from __future__ import annotations

import re
from typing import Any

__all__ = ["REDACTION_RULES", "redact_secrets", "redact_tree"]

_SECRET_KEYS = r"password|secret|token|key|auth|bearer|passwd|credential"

# Placeholders written by this module; never matched again as a secret value
_PLACEHOLDER = r"\[[\w-]*redacted\]"

REDACTION_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    # Signed and unsigned JWTs
    (
        re.compile(r"eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+(?:\.[A-Za-z0-9_-]*)?"),
        "[jwt-redacted]",
    ),
    # "password": "value" (escape-aware)
    (
        re.compile(rf'"({_SECRET_KEYS})"\s*:\s*"(?:[^"\\]|\\.){{3,}}"', re.IGNORECASE),
        r'"\1":"[redacted]"',
    ),
    # password=value / token: value
    (
        re.compile(
            rf"({_SECRET_KEYS})(\s*[=:]\s*)(?!{_PLACEHOLDER})[\"']?[^\s\"',}}\]\\]{{3,}}",
            re.IGNORECASE,
        ),
        r"\1\2[redacted]",
    ),
    (
        re.compile(r"\bBearer\s+[A-Za-z0-9_\-/.+=]{10,}", re.IGNORECASE),
        "Bearer [redacted]",
    ),
    (
        re.compile(
            r"(?:postgres|mysql|mongo(?:db(?:\+srv)?)?|rediss?|amqps?|mssql)(?:ql)?://[^\s\"'\\]+",
            re.IGNORECASE,
        ),
        "[connection-string-redacted]",
    ),
)


def redact_secrets(text: str) -> str:
    """Scrub tokens, credentials and connection strings from ``text``.

    Pure and total: non-string input is coerced with ``str()`` and the
    function never raises. Running it twice gives the same result as once.

    >>> redact_secrets("password=SuperSecret123")
    'password=[redacted]'
    """
    if not isinstance(text, str):
        text = str(text)
    for pattern, replacement in REDACTION_RULES:
        text = pattern.sub(replacement, text)
    return text


def redact_tree(value: Any) -> Any:
    """Apply ``redact_secrets`` to every string inside decoded JSON data.

    Redacting before serialization also catches secrets in strings that hold
    JSON of their own, which appear escaped once the outer document is dumped.
    """
    if isinstance(value, str):
        return redact_secrets(value)
    if isinstance(value, list):
        return [redact_tree(item) for item in value]
    if isinstance(value, dict):
        return {key: redact_tree(item) for key, item in value.items()}
    return value
