"""Argument models for the tool surface.

Shape validation only: these reject obviously hostile input (absolute paths,
``..`` segments, brace expansion, oversized strings) before any tool runs.
Containment is still enforced by the path resolver on every access.
"""

from __future__ import annotations

import ntpath
import posixpath
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cypress_mcp.constants import (
    MAX_SELECTOR_LENGTH,
    MAX_SPEC_PATH_LENGTH,
    MAX_TEST_TITLE_LENGTH,
)

__all__ = [
    "GetLastRunArgs",
    "GetScreenshotArgs",
    "ListSpecsArgs",
    "QueryDomArgs",
    "ReadSpecArgs",
    "RunSpecArgs",
]


def _is_absolute(value: str) -> bool:
    return posixpath.isabs(value) or ntpath.isabs(value)


def _no_parent_segments(value: str) -> str:
    if ".." in value:
        raise ValueError("must not contain ..")
    return value


def _relative(value: str) -> str:
    _no_parent_segments(value)
    if _is_absolute(value):
        raise ValueError("must be a relative path")
    return value


class _Args(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ListSpecsArgs(_Args):
    pattern: str | None = Field(
        default=None,
        max_length=MAX_SPEC_PATH_LENGTH,
        description="Relative glob pattern (default: all spec files)",
    )

    @field_validator("pattern")
    @classmethod
    def check_pattern(cls, value: str | None) -> str | None:
        if value is None:
            return value
        _relative(value)
        # {**/*.cy.ts,/etc/passwd} would smuggle an absolute path past the check above
        if "{" in value:
            raise ValueError("pattern must not contain brace expansion")
        return value


class ReadSpecArgs(_Args):
    path: str = Field(
        min_length=1,
        max_length=MAX_SPEC_PATH_LENGTH,
        description="Relative path to the spec file (from project root)",
    )

    @field_validator("path")
    @classmethod
    def check_path(cls, value: str) -> str:
        return _relative(value)


class GetLastRunArgs(_Args):
    failed_only: bool = Field(
        default=False,
        alias="failedOnly",
        description=(
            "When true, return only failed tests. "
            "Recommended to reduce sensitive data exposure (default: false)"
        ),
    )


class GetScreenshotArgs(_Args):
    path: str = Field(
        min_length=1,
        max_length=MAX_SPEC_PATH_LENGTH,
        description=(
            "Path to the screenshot file, absolute or relative to project root "
            "(from last run results)"
        ),
    )

    @field_validator("path")
    @classmethod
    def check_path(cls, value: str) -> str:
        return _no_parent_segments(value)


class QueryDomArgs(_Args):
    spec: str = Field(
        min_length=1,
        max_length=MAX_SPEC_PATH_LENGTH,
        description='Relative spec path (e.g. "cypress/e2e/login.cy.ts")',
    )
    test_title: str = Field(
        min_length=1,
        max_length=MAX_TEST_TITLE_LENGTH,
        alias="testTitle",
        description='Full test title as returned by get_last_run (joined with " > ")',
    )
    selector: str = Field(
        min_length=1,
        max_length=MAX_SELECTOR_LENGTH,
        description='CSS selector to query (e.g. ".error-message", "#submit-btn")',
    )


class RunSpecArgs(_Args):
    spec: str = Field(
        min_length=1,
        max_length=MAX_SPEC_PATH_LENGTH,
        description=(
            "Relative path to the spec file within the project "
            '(e.g. "cypress/e2e/login.cy.ts")'
        ),
    )
    headed: bool = Field(
        default=False,
        description="Run with a visible browser window instead of headless (default: false)",
    )
    browser: Literal["chrome", "firefox", "electron", "edge"] | None = Field(
        default=None,
        description="Browser to use (default: electron)",
    )

    @field_validator("spec")
    @classmethod
    def check_spec(cls, value: str) -> str:
        return _relative(value)
