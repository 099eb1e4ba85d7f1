"""Pytest configuration and fixtures."""

import json
import stat
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
import pytest_asyncio

from cypress_mcp.runner import RunnerConfig, SpecRunner
from cypress_mcp.tools import ToolRegistry

LOGIN_SPEC = """describe('login', () => {
  it('logs in', () => {
    cy.visit('/login')
    cy.get('#user').type('alice')
  })
})
"""


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """A minimal Cypress project with two specs and a support file."""
    root = tmp_path / "project"
    (root / "cypress" / "e2e" / "auth").mkdir(parents=True)
    (root / "cypress" / "support").mkdir(parents=True)
    (root / "cypress" / "e2e" / "login.cy.ts").write_text(LOGIN_SPEC)
    (root / "cypress" / "e2e" / "auth" / "logout.spec.js").write_text("it('logs out', () => {})\n")
    (root / "cypress" / "support" / "e2e.ts").write_text("// support\n")
    (root / "cypress.config.ts").write_text("export default {}\n")
    return root


@pytest.fixture
def write_last_run(project_root: Path) -> Callable[[object], Path]:
    """Write ``.cypress-mcp/last-run.json`` with the given payload."""

    def _write(payload: object) -> Path:
        out = project_root / ".cypress-mcp"
        out.mkdir(exist_ok=True)
        path = out / "last-run.json"
        text = payload if isinstance(payload, str) else json.dumps(payload)
        path.write_text(text)
        return path

    return _write


@pytest.fixture
def fake_cypress(project_root: Path) -> Callable[[str], Path]:
    """Install a ``/bin/sh`` stand-in for ``node_modules/.bin/cypress``."""

    def _install(body: str) -> Path:
        bin_dir = project_root / "node_modules" / ".bin"
        bin_dir.mkdir(parents=True, exist_ok=True)
        script = bin_dir / "cypress"
        script.write_text(f"#!/bin/sh\n{body}\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return _install


@pytest.fixture
def fast_config() -> RunnerConfig:
    """Runner limits short enough for tests that wait on timers."""
    return RunnerConfig(timeout=1.0, kill_grace=0.5, drain_timeout=0.5)


@pytest_asyncio.fixture
async def runner(project_root: Path, fast_config: RunnerConfig) -> AsyncGenerator[SpecRunner, None]:
    """SpecRunner bound to the test project; shut down after the test."""
    spec_runner = SpecRunner(project_root, fast_config)
    yield spec_runner
    await spec_runner.shutdown()


@pytest.fixture
def registry(project_root: Path, fast_config: RunnerConfig) -> ToolRegistry:
    return ToolRegistry(project_root, SpecRunner(project_root, fast_config))
