"""Sandboxed execution of Cypress spec runs."""

from cypress_mcp.runner.capture import CapturedOutput
from cypress_mcp.runner.config import DEFAULT_RUNNER_CONFIG, ENV_ALLOWLIST, RunnerConfig
from cypress_mcp.runner.process import (
    RUN_COMPLETE_MESSAGE,
    RunOptions,
    RunProcess,
    RunResult,
    SpecRunner,
    build_run_command,
    build_run_env,
)
from cypress_mcp.runner.slot import RunSlot, SlotLease

__all__ = [
    "CapturedOutput",
    "DEFAULT_RUNNER_CONFIG",
    "ENV_ALLOWLIST",
    "RUN_COMPLETE_MESSAGE",
    "RunOptions",
    "RunProcess",
    "RunResult",
    "RunSlot",
    "RunnerConfig",
    "SlotLease",
    "SpecRunner",
    "build_run_command",
    "build_run_env",
]
