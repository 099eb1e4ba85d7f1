"""Limits, file names, and allow-lists shared across the server."""

from __future__ import annotations

import re

__all__ = [
    "ALLOWED_BROWSERS",
    "DEFAULT_SPEC_GLOBS",
    "IGNORED_DIRS",
    "LAST_RUN_FILE",
    "MAX_ELEMENT_CHARS",
    "MAX_LAST_RUN_BYTES",
    "MAX_QUERY_RESULTS",
    "MAX_REQUEST_BODY_BYTES",
    "MAX_SELECTOR_LENGTH",
    "MAX_SNAPSHOT_BYTES",
    "MAX_SPEC_BYTES",
    "MAX_SPEC_PATH_LENGTH",
    "MAX_TEST_TITLE_LENGTH",
    "OUTPUT_DIR_NAME",
    "REDACT_COMMANDS",
    "SCREENSHOT_EXTENSIONS",
    "SNAPSHOTS_SUBDIR",
    "SPEC_EXTENSIONS",
    "SPEC_FILE_RE",
]

OUTPUT_DIR_NAME = ".cypress-mcp"
LAST_RUN_FILE = f"{OUTPUT_DIR_NAME}/last-run.json"
SNAPSHOTS_SUBDIR = "snapshots"

_SPEC_KINDS = ("cy", "spec")
_SPEC_LANGS = ("ts", "js", "tsx", "jsx", "mjs", "cjs")

SPEC_EXTENSIONS: tuple[str, ...] = tuple(
    f".{kind}.{lang}" for kind in _SPEC_KINDS for lang in _SPEC_LANGS
)
SPEC_FILE_RE = re.compile(r"\.(cy|spec)\.(ts|js|tsx|jsx|mjs|cjs)$")
DEFAULT_SPEC_GLOBS: tuple[str, ...] = ("**/*",)
IGNORED_DIRS = frozenset({"node_modules", "dist", ".git"})

SCREENSHOT_EXTENSIONS = (".png", ".jpg", ".jpeg")

ALLOWED_BROWSERS = ("chrome", "firefox", "electron", "edge")

# Commands whose logged message is the typed/sent value (passwords, tokens, PII)
REDACT_COMMANDS = frozenset(
    {"type", "clear", "request", "setCookie", "session", "invoke", "its"}
)

MAX_SPEC_PATH_LENGTH = 1_024
MAX_TEST_TITLE_LENGTH = 2_048
MAX_SELECTOR_LENGTH = 512

MAX_SPEC_BYTES = 500_000
MAX_LAST_RUN_BYTES = 50 * 1_024 * 1_024
MAX_SNAPSHOT_BYTES = 2 * 1_024 * 1_024
MAX_REQUEST_BODY_BYTES = 1_024 * 1_024

MAX_QUERY_RESULTS = 5
MAX_ELEMENT_CHARS = 5_000
