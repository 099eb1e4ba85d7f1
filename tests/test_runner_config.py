"""Tests for runner limits, argument lists, and the child environment."""

from __future__ import annotations

from pathlib import Path, PurePath

import pytest

from cypress_mcp.runner import (
    DEFAULT_RUNNER_CONFIG,
    ENV_ALLOWLIST,
    RunnerConfig,
    build_run_command,
    build_run_env,
)


def test_default_runner_config():
    """DEFAULT_RUNNER_CONFIG carries the production limits."""
    assert DEFAULT_RUNNER_CONFIG.timeout == 300.0
    assert DEFAULT_RUNNER_CONFIG.kill_grace == 5.0
    assert DEFAULT_RUNNER_CONFIG.drain_timeout == 5.0
    assert DEFAULT_RUNNER_CONFIG.max_buffer_bytes == 100_000
    assert DEFAULT_RUNNER_CONFIG.display_cap == 2_000
    assert DEFAULT_RUNNER_CONFIG.binary == PurePath("node_modules", ".bin", "cypress")
    assert DEFAULT_RUNNER_CONFIG.env_allowlist == ENV_ALLOWLIST


def test_runner_config_is_frozen():
    """RunnerConfig cannot be mutated."""
    with pytest.raises((AttributeError, TypeError)):
        DEFAULT_RUNNER_CONFIG.timeout = 1.0  # type: ignore[misc]


def test_custom_runner_config_keeps_other_defaults():
    """Overriding one limit keeps the other defaults."""
    custom = RunnerConfig(timeout=10.0)
    assert custom.timeout == 10.0
    assert custom.kill_grace == 5.0


def test_allowlist_excludes_credentials():
    """The default allow-list carries no credential variables."""
    for name in ("AWS_SECRET_ACCESS_KEY", "GITHUB_TOKEN", "CYPRESS_RECORD_KEY", "NPM_TOKEN"):
        assert name not in ENV_ALLOWLIST


# === build_run_command ===


def test_build_run_command_minimal():
    """The base command is run --spec with the absolute path."""
    cmd = build_run_command(Path("/p/node_modules/.bin/cypress"), Path("/p/cypress/e2e/a.cy.ts"))
    assert cmd == ["/p/node_modules/.bin/cypress", "run", "--spec", "/p/cypress/e2e/a.cy.ts"]


def test_build_run_command_with_options():
    """Options append --headed and --browser."""
    cmd = build_run_command(
        Path("/p/cypress"), Path("/p/a.cy.ts"), headed=True, browser="firefox"
    )
    assert cmd == ["/p/cypress", "run", "--spec", "/p/a.cy.ts", "--headed", "--browser", "firefox"]


def test_build_run_command_keeps_shell_metacharacters_in_one_argument():
    """Shell metacharacters in the spec path stay one argv element."""
    spec = Path("/p/cypress/e2e/$(touch pwned); rm -rf ~.cy.ts")
    cmd = build_run_command(Path("/p/cypress"), spec)
    assert cmd[3] == str(spec)
    assert len(cmd) == 4


# === build_run_env ===


def test_build_run_env_drops_unlisted_variables():
    """Variables outside the allow-list are dropped."""
    environ = {
        "PATH": "/usr/bin",
        "HOME": "/home/me",
        "DISPLAY": ":0",
        "GITHUB_TOKEN": "ghp_secret",
        "DATABASE_URL": "postgres://u:p@h/db",
    }
    env = build_run_env(environ, ENV_ALLOWLIST)
    assert env == {"PATH": "/usr/bin", "HOME": "/home/me", "DISPLAY": ":0"}


def test_build_run_env_always_has_path_and_home():
    """PATH and HOME are always present."""
    assert build_run_env({}, ENV_ALLOWLIST) == {"PATH": "", "HOME": ""}


def test_build_run_env_skips_empty_values():
    """Empty allow-listed variables are left out."""
    env = build_run_env({"PATH": "/bin", "CI": ""}, ENV_ALLOWLIST)
    assert "CI" not in env


def test_build_run_env_custom_allowlist():
    """A custom allow-list is honoured."""
    env = build_run_env({"PATH": "/bin", "EXTRA": "1", "CI": "true"}, ("EXTRA",))
    assert env == {"PATH": "/bin", "HOME": "", "EXTRA": "1"}
