"""Reading and shaping the last-run artifact.

The reporter plugin writes ``.cypress-mcp/last-run.json`` after every run.
The file is produced by code running inside the application under test, so
it is treated as hostile: symlink escapes are refused, the size is checked
before reading, and the shape is validated before any field is used.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cypress_mcp.constants import LAST_RUN_FILE, MAX_LAST_RUN_BYTES, REDACT_COMMANDS
from cypress_mcp.security.errors import MalformedUpstreamDataError, NotFoundError, TraversalError
from cypress_mcp.security.paths import resolve_contained
from cypress_mcp.security.redact import redact_tree

__all__ = [
    "CaseResult",
    "NO_RESULTS_MESSAGE",
    "RunData",
    "SpecResult",
    "get_last_run",
    "mask_commands",
    "read_last_run",
]

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = (
    "No test results yet. Run Cypress tests first (cypress open or cypress run)."
)


class _Passthrough(BaseModel):
    # Unknown fields are kept and returned as-is
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class CaseResult(_Passthrough):
    """One test within a spec."""

    title: str
    state: str
    dom_snapshot_path: str | None = Field(default=None, alias="domSnapshotPath")


class SpecResult(_Passthrough):
    spec: str
    tests: list[CaseResult] | None = None


class RunData(_Passthrough):
    specs: list[SpecResult] | None = None

    def find_case(self, spec: str, title: str) -> tuple[SpecResult | None, CaseResult | None]:
        """Look up a test by spec path and full title."""
        for entry in self.specs or []:
            if entry.spec == spec:
                for case in entry.tests or []:
                    if case.title == title:
                        return entry, case
                return entry, None
        return None, None


def read_last_run(project_root: Path) -> RunData | None:
    """Load and validate the last-run artifact.

    Returns:
        The validated data, or None if no run has been recorded yet

    Raises:
        TraversalError: The artifact is a symlink leading outside the project
        MalformedUpstreamDataError: Oversized, not JSON, or the wrong shape
    """
    try:
        resolved = resolve_contained(project_root, LAST_RUN_FILE)
    except NotFoundError:
        return None
    except TraversalError:
        raise TraversalError(
            "Access denied: last-run.json is a symlink outside the project root"
        ) from None

    size = resolved.stat().st_size
    if size > MAX_LAST_RUN_BYTES:
        raise MalformedUpstreamDataError(
            f"last-run.json is too large ({size} bytes). The file may be corrupted."
        )

    try:
        parsed = json.loads(resolved.read_bytes())
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise MalformedUpstreamDataError(
            "last-run.json contains invalid JSON. "
            "The file may be corrupted or still being written."
        ) from None

    try:
        return RunData.model_validate(parsed)
    except ValidationError as exc:
        logger.warning("last-run.json failed validation: %d errors", exc.error_count())
        raise MalformedUpstreamDataError(
            "last-run.json has unexpected structure. The file may be corrupted."
        ) from None


def mask_commands(test: dict[str, Any]) -> dict[str, Any]:
    """Hide the logged values of commands that carry typed or sent data.

    Failed tests keep the command name as a debugging hint.
    """
    failed = test.get("state") == "failed"
    commands = []
    for command in test.get("commands") or []:
        if isinstance(command, dict) and command.get("name") in REDACT_COMMANDS:
            name = command["name"]
            command = {**command, "message": f"[redacted - {name}]" if failed else "[redacted]"}
        commands.append(command)
    return {**test, "commands": commands}


def get_last_run(project_root: Path, failed_only: bool = False) -> str:
    """Last run results as pretty-printed JSON.

    Args:
        project_root: Project directory
        failed_only: Keep only failed tests, and only specs that still have any

    Raises:
        TraversalError: See ``read_last_run``
        MalformedUpstreamDataError: See ``read_last_run``
    """
    data = read_last_run(project_root)
    if data is None:
        return NO_RESULTS_MESSAGE

    payload = data.model_dump(by_alias=True, exclude_unset=True)
    specs = payload.get("specs") or []
    if failed_only:
        specs = [
            {**spec, "tests": [t for t in spec.get("tests") or [] if t.get("state") == "failed"]}
            for spec in specs
        ]
        specs = [spec for spec in specs if spec["tests"]]
    payload["specs"] = [
        {**spec, "tests": [mask_commands(t) for t in spec.get("tests") or []]}
        for spec in specs
    ]
    return json.dumps(redact_tree(payload), indent=2)
