# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Spawning and stopping external runner processes."""

import asyncio
import signal
from dataclasses import dataclass
from pathlib import Path

from perfrun.common.environment import Environment
from perfrun.common.exceptions import ProcessSpawnError, ToolNotFoundError
from perfrun.common.mixins import PerfRunLoggerMixin

__all__ = ["ProcessExit", "ProcessHandle", "ProcessSupervisor"]


@dataclass(frozen=True)
class ProcessExit:
    """How a process ended: an exit code, or the name of the signal that ended it."""

    exit_code: int | None
    signal: str | None = None

    @property
    def success(self) -> bool:
        return self.signal is None and self.exit_code == 0


class ProcessHandle:
    """Thin wrapper around an :class:`asyncio.subprocess.Process`."""

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def stdout(self) -> asyncio.StreamReader | None:
        return self._process.stdout

    @property
    def stderr(self) -> asyncio.StreamReader | None:
        return self._process.stderr

    @property
    def stdin(self) -> asyncio.StreamWriter | None:
        return self._process.stdin

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    def kill(self, sig: signal.Signals) -> bool:
        """Deliver ``sig``. False if the process has already exited."""
        if self._process.returncode is not None:
            return False
        try:
            self._process.send_signal(sig)
        except ProcessLookupError:
            return False
        return True

    async def wait(self) -> ProcessExit:
        returncode = await self._process.wait()
        if returncode < 0:
            try:
                name = signal.Signals(-returncode).name
            except ValueError:
                name = f"SIG{-returncode}"
            return ProcessExit(exit_code=None, signal=name)
        return ProcessExit(exit_code=returncode)


class ProcessSupervisor(PerfRunLoggerMixin):
    """Starts processes and stops them with SIGTERM, escalating to SIGKILL.

    ``stop`` never waits for the process to die. If the process is still alive
    ``GRACE_PERIOD`` seconds after SIGTERM was accepted, it is sent SIGKILL.
    """

    def __init__(self, grace_period: float | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.grace_period = (
            grace_period if grace_period is not None else Environment.STOP.GRACE_PERIOD
        )
        self._escalations: dict[int, asyncio.TimerHandle] = {}

    async def spawn(
        self,
        executable: str,
        args: list[str],
        cwd: Path | str,
        env: dict[str, str],
    ) -> ProcessHandle:
        self.debug(f"Spawning {executable} with {len(args)} arguments in {cwd}")
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                cwd=str(cwd),
                env=env,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            # A missing cwd raises the same error; only blame the tool when cwd exists.
            if Path(cwd).is_dir():
                raise ToolNotFoundError(executable) from e
            raise ProcessSpawnError(
                f"Failed to start {executable}: working directory {cwd} does not exist"
            ) from e
        except (OSError, ValueError) as e:
            raise ProcessSpawnError(f"Failed to start {executable}: {e}") from e

        self.info(f"Started {executable} with PID {process.pid}")
        return ProcessHandle(process)

    def stop(self, handle: ProcessHandle) -> bool:
        """Send SIGTERM and arm the SIGKILL escalation. False if already exited."""
        if not handle.kill(signal.SIGTERM):
            self.debug(f"Process {handle.pid} already exited, nothing to stop")
            return False

        self.info(f"Sent SIGTERM to process {handle.pid}")
        loop = asyncio.get_running_loop()
        previous = self._escalations.pop(handle.pid, None)
        if previous is not None:
            previous.cancel()
        self._escalations[handle.pid] = loop.call_later(
            self.grace_period, self._escalate, handle
        )
        return True

    def _escalate(self, handle: ProcessHandle) -> None:
        self._escalations.pop(handle.pid, None)
        if handle.returncode is not None:
            return
        self.warning(
            f"Process {handle.pid} still alive {self.grace_period}s after SIGTERM, sending SIGKILL"
        )
        handle.kill(signal.SIGKILL)

    def release(self, handle: ProcessHandle) -> None:
        """Cancel a pending escalation once the process has exited."""
        timer = self._escalations.pop(handle.pid, None)
        if timer is not None:
            timer.cancel()

    @property
    def pending_escalations(self) -> int:
        return len(self._escalations)
