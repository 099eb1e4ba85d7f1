"""Sandboxed execution of the Cypress runner.

The runner is started with an explicit argument list (never through a
shell), a minimal allow-listed environment, and a wall-clock timeout that
escalates from SIGTERM to SIGKILL. A supervisor task owns the admission
lease and frees it only once the process is observed dead, whichever way
the run ends.

Exit is observed on its own, apart from the output pipes: a background
child that inherits stdout must not keep a finished run looking alive.
Once the runner exits, whatever is left of its process group is killed.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel

from cypress_mcp.constants import SPEC_FILE_RE
from cypress_mcp.runner.capture import CapturedOutput
from cypress_mcp.runner.config import DEFAULT_RUNNER_CONFIG, RunnerConfig
from cypress_mcp.runner.slot import RunSlot, SlotLease
from cypress_mcp.security.errors import (
    InvalidTargetError,
    MediationError,
    NotFoundError,
    ResourceBusyError,
    RunTimeoutError,
    SpawnFailureError,
)
from cypress_mcp.security.paths import (
    ResolvedPath,
    canonical_root,
    contained_join,
    resolve_contained,
)
from cypress_mcp.security.redact import redact_secrets

logger = logging.getLogger(__name__)

__all__ = [
    "RUN_COMPLETE_MESSAGE",
    "RunOptions",
    "RunProcess",
    "RunResult",
    "SpecRunner",
    "build_run_command",
    "build_run_env",
]

RUN_COMPLETE_MESSAGE = "Run complete. Call get_last_run to see full results."


def build_run_command(
    binary: Path,
    spec: Path,
    *,
    headed: bool = False,
    browser: str | None = None,
) -> list[str]:
    """Build the runner argument list.

    Pure function - easily tested without spawning anything. The spec path is
    a single argv element, so nothing in it is ever shell-interpreted.
    """
    cmd = [str(binary), "run", "--spec", str(spec)]
    if headed:
        cmd.append("--headed")
    if browser is not None:
        cmd.extend(["--browser", browser])
    return cmd


def build_run_env(environ: Mapping[str, str], allowlist: Sequence[str]) -> dict[str, str]:
    """Copy only allow-listed variables from ``environ``.

    PATH and HOME are always present (possibly empty); the rest only when set.
    """
    env = {"PATH": environ.get("PATH", ""), "HOME": environ.get("HOME", "")}
    for name in allowlist:
        value = environ.get(name)
        if value:
            env[name] = value
    return env


@dataclass(frozen=True)
class RunOptions:
    """Optional runner flags."""

    headed: bool = False
    browser: str | None = None


class RunResult(BaseModel):
    """Outcome of a completed run.

    ``output`` is diagnostic only: the first characters of redacted console
    output. Full structured results come from the last-run artifact.
    """

    success: bool
    exit_code: int
    duration_ms: int
    output: str | None
    message: str = RUN_COMPLETE_MESSAGE


class RunProcess(asyncio.SubprocessProtocol):
    """Event-loop protocol for one runner process.

    Both output pipes feed a single ``CapturedOutput``. ``exited`` resolves
    when the runner itself exits, ``pipes_closed`` when both pipes reach
    EOF. ``asyncio.subprocess.Process.wait()`` waits for both at once, which
    is why the runner is not driven through it.

    Args:
        capture: Bounded buffer receiving stdout and stderr
    """

    def __init__(self, capture: CapturedOutput) -> None:
        loop = asyncio.get_running_loop()
        self.capture = capture
        self.exited: asyncio.Future[None] = loop.create_future()
        self.pipes_closed: asyncio.Future[None] = loop.create_future()
        self.transport: asyncio.SubprocessTransport | None = None
        self._open_pipes = {1, 2}

    @property
    def pid(self) -> int:
        assert self.transport is not None
        return self.transport.get_pid()

    @property
    def returncode(self) -> int | None:
        if self.transport is None:
            return None
        return self.transport.get_returncode()

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def pipe_data_received(self, fd: int, data: bytes | str) -> None:
        # Keeps reading past the ceiling so the child never blocks on a full pipe
        self.capture.write(data if isinstance(data, bytes) else data.encode())

    def pipe_connection_lost(self, fd: int, exc: Exception | None) -> None:
        self._open_pipes.discard(fd)
        if not self._open_pipes and not self.pipes_closed.done():
            self.pipes_closed.set_result(None)

    def process_exited(self) -> None:
        if not self.exited.done():
            self.exited.set_result(None)

    def close(self) -> None:
        """Close the transport, which also closes our ends of the pipes."""
        if self.transport is not None:
            self.transport.close()


@dataclass(frozen=True)
class _Exit:
    """Terminal state of a supervised process."""

    returncode: int | None
    timed_out: bool


class SpecRunner:
    """Runs one spec at a time inside a project root.

    Args:
        project_root: Project directory; the runner binary is resolved under it
        config: Limits and environment allow-list
    """

    def __init__(
        self,
        project_root: str | os.PathLike[str],
        config: RunnerConfig = DEFAULT_RUNNER_CONFIG,
    ) -> None:
        self.project_root = Path(project_root)
        self.config = config
        self.slot = RunSlot()
        self._supervisor: asyncio.Task[_Exit] | None = None
        self._kill_timer: asyncio.TimerHandle | None = None

    async def run(self, spec: str, options: RunOptions | None = None) -> RunResult:
        """Validate, spawn and wait for a single spec run.

        Raises:
            ResourceBusyError: Another run is in flight (raised immediately)
            InvalidTargetError: Absolute path, non-spec file, or symlinked spec
            TraversalError: The spec resolves outside the project root
            NotFoundError: The spec file does not exist
            SpawnFailureError: The runner binary could not be started
            RunTimeoutError: The run was killed after the timeout and has exited
        """
        # Check-and-set before the first await
        lease = self.slot.try_acquire()
        if lease is None:
            raise ResourceBusyError()
        try:
            return await self._run(lease, spec, options or RunOptions())
        except MediationError as exc:
            if not exc.slot_released:
                lease.release()
            raise
        except BaseException:
            # Once spawned, only the supervisor may free the slot
            if lease.process is None:
                lease.release()
            raise

    def terminate_active(self) -> bool:
        """Send SIGTERM (then SIGKILL after the grace period) to the active run.

        Returns:
            True if a process was signalled
        """
        lease = self.slot.lease
        if lease is None or lease.process is None or lease.process.returncode is not None:
            return False
        self._escalate(lease.process)
        return True

    async def shutdown(self) -> None:
        """Terminate any in-flight run, wait for it, and reset the slot to idle."""
        supervisor = self._supervisor
        if supervisor is not None and not supervisor.done():
            logger.info("Terminating active spec run for shutdown")
            self.terminate_active()
            await asyncio.wait(
                {supervisor},
                timeout=self.config.kill_grace + 2 * self.config.drain_timeout + 1.0,
            )
        self.slot.reset()

    def _validate(self, spec: str) -> ResolvedPath:
        if os.path.isabs(spec):
            raise InvalidTargetError(
                'spec must be a relative path (e.g. "cypress/e2e/login.cy.ts")'
            )
        if not SPEC_FILE_RE.search(spec):
            raise InvalidTargetError(
                "spec must match *.cy.{ts,js,tsx,jsx,mjs,cjs} or *.spec.{ts,js,tsx,jsx,mjs,cjs}"
            )
        root = canonical_root(self.project_root)
        lexical = contained_join(root, spec)
        try:
            resolved = resolve_contained(root, spec)
        except NotFoundError:
            raise NotFoundError(spec, kind="Spec file") from None
        # Execution targets are held to a stricter bar than read targets
        if lexical.is_symlink():
            raise InvalidTargetError("Spec path must not be a symbolic link.")
        return resolved

    async def _run(self, lease: SlotLease, spec: str, options: RunOptions) -> RunResult:
        target = self._validate(spec)
        root = canonical_root(self.project_root)
        command = build_run_command(
            root / self.config.binary,
            target,
            headed=options.headed,
            browser=options.browser,
        )
        capture = CapturedOutput(self.config.max_buffer_bytes)
        started = time.monotonic()

        process = await self._spawn(lease, command, root, capture)
        logger.info("Spec run started (pid %s): %s", process.pid, spec)
        supervisor = asyncio.create_task(self._supervise(lease, process), name="spec-run")
        self._supervisor = supervisor
        try:
            outcome = await asyncio.shield(supervisor)
        except asyncio.CancelledError:
            # The caller gave up; the slot still frees only when the process dies
            self.terminate_active()
            raise

        if outcome.timed_out:
            raise RunTimeoutError(self.config.timeout)

        duration_ms = int((time.monotonic() - started) * 1000)
        exit_code = outcome.returncode if outcome.returncode is not None else -1
        output = redact_secrets(capture.text())[: self.config.display_cap]
        logger.info(
            "Spec run finished: exit=%s duration=%sms dropped=%s bytes",
            exit_code,
            duration_ms,
            capture.dropped,
        )
        return RunResult(
            success=exit_code == 0,
            exit_code=exit_code,
            duration_ms=duration_ms,
            output=output or None,
        )

    async def _spawn(
        self,
        lease: SlotLease,
        command: list[str],
        cwd: Path,
        capture: CapturedOutput,
    ) -> RunProcess:
        loop = asyncio.get_running_loop()
        try:
            _, process = await loop.subprocess_exec(
                lambda: RunProcess(capture),
                *command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
                env=build_run_env(os.environ, self.config.env_allowlist),
                start_new_session=True,
            )
        except FileNotFoundError:
            lease.release()
            raise SpawnFailureError(
                "Cypress binary not found. Run `npm install cypress` in the project."
            ) from None
        except OSError as exc:
            lease.release()
            logger.warning("Failed to start runner: %s", exc.strerror or type(exc).__name__)
            raise SpawnFailureError("Failed to start Cypress process.") from None
        lease.process = process
        return process

    async def _supervise(self, lease: SlotLease, process: RunProcess) -> _Exit:
        timed_out = False
        try:
            try:
                await asyncio.wait_for(
                    asyncio.shield(process.exited), timeout=self.config.timeout
                )
            except TimeoutError:
                timed_out = True
                logger.warning(
                    "Spec run exceeded %ss, terminating pid %s",
                    self.config.timeout,
                    process.pid,
                )
                self._escalate(process)
                await process.exited
            await self._drain(process)
        except asyncio.CancelledError:
            _signal_group(process, signal.SIGKILL)
            raise
        finally:
            if self._kill_timer is not None:
                self._kill_timer.cancel()
                self._kill_timer = None
            # Sweep children that outlived the runner
            _signal_group(process, signal.SIGKILL)
            process.close()
            lease.release()
        return _Exit(returncode=process.returncode, timed_out=timed_out)

    async def _drain(self, process: RunProcess) -> None:
        """Collect the output still buffered in the pipes after the runner exited.

        A child holding a pipe open is killed with the rest of the group, so
        draining never waits longer than twice ``drain_timeout``.
        """
        if await _settled(process.pipes_closed, self.config.drain_timeout):
            return
        logger.warning(
            "Runner exited with output pipes still open, killing process group %s",
            process.pid,
        )
        _signal_group(process, signal.SIGKILL)
        await _settled(process.pipes_closed, self.config.drain_timeout)

    def _escalate(self, process: RunProcess) -> None:
        _signal_group(process, signal.SIGTERM)
        if self._kill_timer is None:
            self._kill_timer = asyncio.get_running_loop().call_later(
                self.config.kill_grace, _signal_group, process, signal.SIGKILL
            )


async def _settled(future: asyncio.Future[None], timeout: float) -> bool:
    done, _ = await asyncio.wait({future}, timeout=timeout)
    return bool(done)


def _signal_group(process: RunProcess, sig: signal.Signals) -> None:
    """Signal the runner's whole process group, including children that outlived it.

    A group with no members left is a no-op.
    """
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, sig)
        elif process.returncode is None and process.transport is not None:
            process.transport.send_signal(sig)
    except (ProcessLookupError, PermissionError):
        pass
