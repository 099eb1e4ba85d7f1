"""Tunables for spec execution.

All limits used by the runner live here. Import from this module instead of
hardcoding numbers in the process manager.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath

__all__ = ["DEFAULT_RUNNER_CONFIG", "ENV_ALLOWLIST", "RunnerConfig"]

#: Environment variables passed through to the runner. Everything else,
#: including tokens and credentials in the parent environment, is dropped.
ENV_ALLOWLIST: tuple[str, ...] = (
    "PATH",
    "HOME",
    # Linux headless display for Electron/Chrome
    "DISPLAY",
    "XAUTHORITY",
    "TMPDIR",
    # Run-mode signal, not a secret
    "CI",
)


@dataclass(frozen=True)
class RunnerConfig:
    """Limits (seconds, bytes, characters) for one spec run.

    Attributes:
        timeout: Wall-clock limit before SIGTERM is sent.
        kill_grace: Wait after SIGTERM before SIGKILL.
        drain_timeout: Wait for output pipes to close after the process exits.
        max_buffer_bytes: Ceiling on captured stdout+stderr, enforced at write.
        display_cap: Characters of captured output returned to the caller.
        binary: Runner executable, relative to the project root.
        env_allowlist: Parent environment variables passed to the runner.
    """

    timeout: float = 300.0
    kill_grace: float = 5.0
    drain_timeout: float = 5.0
    max_buffer_bytes: int = 100_000
    display_cap: int = 2_000
    binary: PurePath = PurePath("node_modules", ".bin", "cypress")
    env_allowlist: tuple[str, ...] = ENV_ALLOWLIST


#: Defaults used by the server.
DEFAULT_RUNNER_CONFIG = RunnerConfig()
