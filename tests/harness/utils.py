# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Test doubles for processes, notifiers and repository checkouts."""

import asyncio
import signal
from dataclasses import dataclass, field
from pathlib import Path

from perfrun.orchestrator.models import (
    OutputEvent,
    ResultsAvailableEvent,
    RunOutcome,
)
from perfrun.orchestrator.repository_config import RepositoryConfig
from perfrun.orchestrator.supervisor import ProcessExit

CHECKOUT_ENV_JS = """\
export const HOSTS = {
  PROD: 'https://prod.example.com/api',
  DEV: 'https://dev.example.com/api',
};

export const TOKENS = {
  PROD: { USER: 'prod-user-token-123456', ADMIN: 'prod-admin-token' },
  DEV: { USER: 'dev-user-token-abcdef' },
};

export const LOAD_PROFILES = {
  LIGHT: { vus: 5, duration: '30s', rampUp: '5s' },
  MEDIUM: { vus: 30, duration: '5m' },
};

export const DEFAULT_PROFILE = LOAD_PROFILES.LIGHT;
"""


def write_repository(
    tests_root: Path,
    repository_id: str = "shop",
    tests: tuple[str, ...] = ("checkout",),
    env_js: str | None = CHECKOUT_ENV_JS,
    suite: bool = True,
) -> Path:
    """Lay out a repository checkout under ``tests_root`` and return its directory."""
    repo_dir = tests_root / "repositories" / repository_id
    (repo_dir / "tests").mkdir(parents=True, exist_ok=True)
    for name in tests:
        (repo_dir / "tests" / f"{name}.js").write_text("export default function () {}\n")
    if env_js is not None:
        (repo_dir / "config").mkdir(exist_ok=True)
        (repo_dir / "config" / "env.js").write_text(env_js)
    if suite:
        (repo_dir / "run.sh").write_text("#!/usr/bin/env bash\necho suite\n")
    return repo_dir


class StaticConfigSource:
    """Config source returning a fixed config, or raising a fixed error."""

    def __init__(
        self, config: RepositoryConfig | None = None, error: Exception | None = None
    ) -> None:
        self.config = config
        self.error = error
        self.calls: list[str] = []

    def get_config(self, repository_id: str) -> RepositoryConfig | None:
        self.calls.append(repository_id)
        if self.error is not None:
            raise self.error
        return self.config


class FakeProcessHandle:
    """Process handle whose output and exit are driven by the test.

    Must be created inside a running event loop.
    """

    def __init__(self, pid: int = 4242, exits_on_signal: bool = True) -> None:
        self.pid = pid
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.stdin = None
        self.returncode: int | None = None
        self.exits_on_signal = exits_on_signal
        self.signals: list[signal.Signals] = []
        self._exit: ProcessExit | None = None
        self._exited = asyncio.Event()
        self.wait_error: Exception | None = None

    def write_stdout(self, data: bytes | str) -> None:
        self.stdout.feed_data(data.encode() if isinstance(data, str) else data)

    def write_stderr(self, data: bytes | str) -> None:
        self.stderr.feed_data(data.encode() if isinstance(data, str) else data)

    def finish(self, exit_code: int = 0, signal_name: str | None = None) -> None:
        if self._exited.is_set():
            return
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        if signal_name is not None:
            self.returncode = -signal.Signals[signal_name].value
            self._exit = ProcessExit(exit_code=None, signal=signal_name)
        else:
            self.returncode = exit_code
            self._exit = ProcessExit(exit_code=exit_code)
        self._exited.set()

    def kill(self, sig: signal.Signals) -> bool:
        if self.returncode is not None:
            return False
        self.signals.append(sig)
        if self.exits_on_signal:
            self.finish(signal_name=sig.name)
        return True

    async def wait(self) -> ProcessExit:
        if self.wait_error is not None:
            raise self.wait_error
        await self._exited.wait()
        return self._exit


@dataclass
class SpawnCall:
    executable: str
    args: list[str]
    cwd: Path
    env: dict[str, str]


class FakeSupervisor:
    """Supervisor handing out :class:`FakeProcessHandle` instances."""

    def __init__(self, spawn_error: Exception | None = None) -> None:
        self.spawn_error = spawn_error
        self.calls: list[SpawnCall] = []
        self.handles: list[FakeProcessHandle] = []
        self.stop_requests: list[int] = []
        self.released: list[int] = []

    async def spawn(self, executable, args, cwd, env) -> FakeProcessHandle:
        if self.spawn_error is not None:
            raise self.spawn_error
        self.calls.append(SpawnCall(executable, list(args), Path(cwd), dict(env)))
        handle = FakeProcessHandle(pid=1000 + len(self.handles))
        self.handles.append(handle)
        return handle

    def stop(self, handle: FakeProcessHandle) -> bool:
        self.stop_requests.append(handle.pid)
        return handle.kill(signal.SIGTERM)

    def release(self, handle: FakeProcessHandle) -> None:
        self.released.append(handle.pid)

    @property
    def last_handle(self) -> FakeProcessHandle:
        return self.handles[-1]


@dataclass
class RecordingNotifier:
    """Notifier that records every call in order.

    Methods named in ``failing`` raise RuntimeError after recording the call.
    """

    calls: list[tuple[str, tuple]] = field(default_factory=list)
    failing: set[str] = field(default_factory=set)

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, args))
        if method in self.failing:
            raise RuntimeError(f"{method} failed")

    async def notify_output(self, run_id: str, event: OutputEvent) -> None:
        self._record("notify_output", run_id, event)

    async def notify_completion(self, run_id: str, outcome: RunOutcome) -> None:
        self._record("notify_completion", run_id, outcome)

    async def notify_stopped(self, run_id: str) -> None:
        self._record("notify_stopped", run_id)

    async def notify_results_available(self, event: ResultsAvailableEvent) -> None:
        self._record("notify_results_available", event)

    def methods(self, run_id: str | None = None) -> list[str]:
        return [
            method
            for method, args in self.calls
            if run_id is None or _run_id_of(method, args) == run_id
        ]

    def output_lines(self, run_id: str, channel: str | None = None) -> list[str]:
        return [
            args[1].text
            for method, args in self.calls
            if method == "notify_output"
            and args[0] == run_id
            and (channel is None or args[1].channel == channel)
        ]

    def outcomes(self, run_id: str) -> list[RunOutcome]:
        return [
            args[1]
            for method, args in self.calls
            if method == "notify_completion" and args[0] == run_id
        ]

    def results_events(self) -> list[ResultsAvailableEvent]:
        return [
            args[0] for method, args in self.calls if method == "notify_results_available"
        ]


def _run_id_of(method: str, args: tuple) -> str:
    if method == "notify_results_available":
        return args[0].run_id
    return args[0]
