# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Tests for the run lifecycle state machine."""

import asyncio
import logging
import sys

import pytest

from perfrun.common.enums import OutputChannel, RunState
from perfrun.common.environment import Environment
from perfrun.common.exceptions import ToolNotFoundError
from perfrun.orchestrator.coordinator import RunLifecycleCoordinator
from perfrun.orchestrator.environment_resolver import EnvironmentResolver
from perfrun.orchestrator.models import (
    FailureOutcome,
    RunCommand,
    SuccessOutcome,
)
from perfrun.orchestrator.notifications import NotificationDispatcher
from perfrun.orchestrator.output import OutputPipeline
from perfrun.orchestrator.repository_config import FileSystemRepositoryConfigSource
from perfrun.orchestrator.supervisor import ProcessSupervisor

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

TERMINAL_METHODS = {"notify_completion", "notify_stopped"}


def checkout_command(**kwargs) -> RunCommand:
    return RunCommand.single("checkout", "shop", explicit_run_id="run-1", **kwargs)


async def settle() -> None:
    """Let watcher and drain tasks process what is already available."""
    for _ in range(20):
        await asyncio.sleep(0)


def terminal_calls(notifier, run_id: str) -> list[str]:
    return [m for m in notifier.methods(run_id) if m in TERMINAL_METHODS]


# -----------------------------------------------------------------------------
# Tests
# -----------------------------------------------------------------------------


class TestStart:
    @pytest.mark.asyncio
    async def test_start_registers_and_spawns(self, coordinator, supervisor, workspace):
        execution = await coordinator.start(checkout_command(custom_token="mine"))

        assert execution.run_id == "run-1"
        assert execution.state == RunState.RUNNING
        assert execution.pid == supervisor.last_handle.pid
        assert execution.result_file.parent == workspace.results_dir("shop")
        assert coordinator.is_running("run-1")
        assert coordinator.list_active() == ["run-1"]

        call = supervisor.calls[0]
        assert call.executable == "k6"
        assert call.cwd == workspace.tests_dir("shop")
        assert "CURRENT_TOKEN=mine" in call.args
        assert "CUSTOM_TOKEN=mine" in call.args
        assert call.env["CURRENT_HOST"] == "https://prod.example.com/api"
        assert workspace.results_dir("shop").is_dir()

        supervisor.last_handle.finish(0)
        await coordinator.wait_idle()

    @pytest.mark.asyncio
    async def test_start_banner_precedes_process_output(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())
        handle = supervisor.last_handle
        handle.write_stdout("running\n")
        handle.finish(0)
        await coordinator.wait_idle()

        lines = notifier.output_lines("run-1")
        assert lines[0] == "Starting test: checkout with profile: LIGHT (ID: run-1)"
        assert lines[1] == "Environment: PROD (Default Token)"
        assert lines[2] == "Target: https://prod.example.com/api, VUs: 5, duration: 30s, ramp-up: 5s"
        assert lines[3].startswith("Started at: ")
        assert lines[4].startswith("Results will be saved to: ")
        assert lines[4].endswith("_checkout.json")
        assert lines[5] == "running"

    @pytest.mark.asyncio
    async def test_suite_run(self, coordinator, supervisor, notifier, workspace):
        await coordinator.start(RunCommand.suite("shop", explicit_run_id="suite-1"))
        call = supervisor.calls[0]

        assert call.executable == "bash"
        assert call.args == [str(workspace.suite_script("shop")), "all", "LIGHT"]
        assert call.cwd == workspace.repository_dir("shop")

        supervisor.last_handle.finish(0)
        await coordinator.wait_idle()

        assert notifier.output_lines("suite-1")[0] == "Starting all tests with profile: LIGHT (ID: suite-1)"
        assert not any(line.startswith("Results will be saved") for line in notifier.output_lines("suite-1"))
        [event] = notifier.results_events()
        assert event.test_name == "all"
        assert event.result_file is None

    @pytest.mark.asyncio
    async def test_spawn_failure_leaves_nothing_behind(self, coordinator, supervisor, notifier):
        supervisor.spawn_error = ToolNotFoundError("k6")

        with pytest.raises(ToolNotFoundError):
            await coordinator.start(checkout_command())

        assert not coordinator.is_running("run-1")
        await coordinator.wait_idle()
        assert notifier.calls == []


class TestOutcomes:
    @pytest.mark.asyncio
    async def test_success_then_results_available_after_delay(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())
        supervisor.last_handle.finish(0)
        await settle()

        assert not coordinator.is_running("run-1")
        assert notifier.outcomes("run-1") == [SuccessOutcome()]
        assert notifier.results_events() == []

        await coordinator.wait_idle()

        [event] = notifier.results_events()
        assert event.run_id == "run-1"
        assert event.test_name == "checkout"
        assert event.repository_id == "shop"
        assert event.result_file.name.endswith("_checkout.json")
        assert notifier.methods().index("notify_completion") < notifier.methods().index(
            "notify_results_available"
        )

    @pytest.mark.asyncio
    async def test_failure(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())
        supervisor.last_handle.write_stderr("thresholds crossed\n")
        supervisor.last_handle.finish(99)
        await coordinator.wait_idle()

        assert notifier.outcomes("run-1") == [FailureOutcome(exit_code=99)]
        assert notifier.output_lines("run-1", OutputChannel.ERROR) == ["thresholds crossed"]
        assert notifier.results_events() == []
        assert not coordinator.pipeline.has_state("run-1")

    @pytest.mark.asyncio
    async def test_killed_by_unexpected_signal_is_a_failure(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())
        supervisor.last_handle.finish(signal_name="SIGSEGV")
        await coordinator.wait_idle()

        [outcome] = notifier.outcomes("run-1")
        assert outcome.exit_code == -1
        assert "SIGSEGV" in outcome.cause

    @pytest.mark.asyncio
    async def test_external_sigterm_is_reported_as_stopped(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())
        supervisor.last_handle.finish(signal_name="SIGTERM")
        await coordinator.wait_idle()

        assert terminal_calls(notifier, "run-1") == ["notify_stopped"]

    @pytest.mark.asyncio
    async def test_monitoring_error(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())
        supervisor.last_handle.wait_error = OSError("wait failed")
        supervisor.last_handle.stdout.feed_eof()
        supervisor.last_handle.stderr.feed_eof()
        await coordinator.wait_idle()

        [outcome] = notifier.outcomes("run-1")
        assert outcome == FailureOutcome(exit_code=-1, cause="wait failed")
        assert not coordinator.is_running("run-1")

    @pytest.mark.asyncio
    async def test_cleanup_on_terminal_state(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())
        handle = supervisor.last_handle
        handle.write_stderr("e\n")
        handle.finish(1)
        await coordinator.wait_idle()

        assert supervisor.released == [handle.pid]
        assert not coordinator.pipeline.has_state("run-1")
        assert not coordinator.dispatcher.has_channel("run-1")
        assert len(coordinator.registry) == 0


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_twice(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())
        supervisor.last_handle.exits_on_signal = False

        assert coordinator.stop("run-1") is True
        assert coordinator.stop("run-1") is False
        assert coordinator.is_running("run-1")
        assert supervisor.stop_requests == [supervisor.last_handle.pid]

        supervisor.last_handle.finish(signal_name="SIGKILL")
        await coordinator.wait_idle()

        assert not coordinator.is_running("run-1")
        assert terminal_calls(notifier, "run-1") == ["notify_stopped"]

    @pytest.mark.asyncio
    async def test_stop_notifies_stopped_never_completion(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())

        assert coordinator.stop("run-1") is True
        await coordinator.wait_idle()

        assert terminal_calls(notifier, "run-1") == ["notify_stopped"]
        assert notifier.results_events() == []

    @pytest.mark.asyncio
    async def test_clean_exit_after_stop_is_still_stopped(self, coordinator, supervisor, notifier, caplog):
        caplog.set_level(logging.INFO, logger="perfrun.orchestrator.coordinator")
        await coordinator.start(checkout_command())
        handle = supervisor.last_handle
        handle.exits_on_signal = False

        assert coordinator.stop("run-1") is True
        handle.finish(0)
        await coordinator.wait_idle()

        assert terminal_calls(notifier, "run-1") == ["notify_stopped"]
        assert notifier.results_events() == []
        assert "Run run-1 stopped (exited after stop request)" in caplog.text

    @pytest.mark.asyncio
    async def test_stop_unknown_run(self, coordinator):
        assert coordinator.stop("ghost") is False

    @pytest.mark.asyncio
    async def test_stop_after_exit(self, coordinator, supervisor):
        await coordinator.start(checkout_command())
        supervisor.last_handle.finish(0)
        await coordinator.wait_idle()

        assert coordinator.stop("run-1") is False


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_runs_are_independent(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())
        await coordinator.start(RunCommand.suite("shop", explicit_run_id="suite-1"))
        first, second = supervisor.handles

        first.write_stdout("from first\n")
        second.write_stdout("from second\n")
        second.finish(2)
        await settle()

        assert coordinator.is_running("run-1")
        assert not coordinator.is_running("suite-1")

        first.finish(0)
        await coordinator.wait_idle()

        assert terminal_calls(notifier, "run-1") == ["notify_completion"]
        assert terminal_calls(notifier, "suite-1") == ["notify_completion"]
        assert "from second" not in notifier.output_lines("run-1")

    @pytest.mark.asyncio
    async def test_partial_lines_and_utf8_across_chunks(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())
        handle = supervisor.last_handle
        encoded = "zażółć gęślą\n".encode()

        handle.write_stdout(b"\x1b[32mhal")
        handle.write_stdout(b"f line\x1b[0m\n" + encoded[:3])
        await settle()
        handle.write_stdout(encoded[3:] + b"progress 1\rprogress 2\rtail without newline")
        handle.finish(0)
        await coordinator.wait_idle()

        assert notifier.output_lines("run-1")[5:] == [
            "half line",
            "zażółć gęślą",
            "progress 1",
            "progress 2",
            "tail without newline",
        ]

    @pytest.mark.asyncio
    async def test_error_burst_is_throttled(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())
        handle = supervisor.last_handle
        handle.write_stderr("".join(f"error {i}\n" for i in range(100)))
        handle.finish(1)
        await coordinator.wait_idle()

        assert notifier.output_lines("run-1", OutputChannel.ERROR) == ["error 0"]

    @pytest.mark.asyncio
    async def test_shutdown_stops_active_runs(self, coordinator, supervisor, notifier):
        await coordinator.start(checkout_command())
        await coordinator.start(RunCommand.suite("shop", explicit_run_id="suite-1"))

        await coordinator.shutdown()

        assert coordinator.list_active() == []
        assert terminal_calls(notifier, "run-1") == ["notify_stopped"]
        assert terminal_calls(notifier, "suite-1") == ["notify_stopped"]


class TestMonitoringFailureWithRealProcess:
    """A run whose output can no longer be read must not leave its process behind."""

    @pytest.fixture
    def real_coordinator(self, workspace, notifier, fast_results, monkeypatch):
        script = workspace.tests_dir("shop") / "checkout.js"
        script.write_text("import time\nprint('ready', flush=True)\ntime.sleep(30)\n")
        shim = workspace.tests_root / "k6-shim"
        shim.write_text(
            f"#!{sys.executable}\n"
            "import runpy, sys\n"
            "runpy.run_path(sys.argv[2], run_name='__main__')\n"
        )
        shim.chmod(0o755)
        monkeypatch.setattr(Environment.RUNNER, "EXECUTABLE", str(shim))
        return RunLifecycleCoordinator(
            resolver=EnvironmentResolver(FileSystemRepositoryConfigSource(workspace)),
            supervisor=ProcessSupervisor(grace_period=2.0),
            pipeline=OutputPipeline(error_line_cap=50, error_min_interval=1.0),
            dispatcher=NotificationDispatcher(notifier),
            workspace=workspace,
        )

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX only")
    async def test_read_failure_kills_and_reaps_process(self, real_coordinator, notifier):
        await real_coordinator.start(checkout_command())
        record = real_coordinator.registry.lookup("run-1")

        async def broken_read(n=-1):
            raise OSError("pipe broke")

        record.process.stdout.read = broken_read
        await asyncio.wait_for(real_coordinator.wait_idle(), timeout=10)

        assert record.process.returncode is not None
        assert not real_coordinator.is_running("run-1")
        [outcome] = notifier.outcomes("run-1")
        assert outcome.exit_code == -1
        assert "pipe broke" in outcome.cause

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX only")
    async def test_cancelled_watcher_kills_process(self, real_coordinator, notifier):
        await real_coordinator.start(checkout_command())
        record = real_coordinator.registry.lookup("run-1")

        record.watcher.cancel()
        with pytest.raises(asyncio.CancelledError):
            await record.watcher

        assert record.process.returncode is not None
        await real_coordinator.wait_idle()
        assert notifier.outcomes("run-1") == [
            FailureOutcome(exit_code=-1, cause="monitoring cancelled")
        ]
