# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Lifecycle of runs, from spawn to the results-available announcement.

States::

    starting -> running -> completed | failed | errored
                        -> stopping -> stopped

A run is registered once its process has been spawned and removed as soon as
the process has exited. Every run ends with exactly one ``notify_completion``
or ``notify_stopped``; a successful run is followed, after a settling delay, by
one ``notify_results_available``.
"""

import asyncio
import codecs
import signal
from datetime import datetime, timezone

from perfrun.common.constants import SUITE_RESULTS_LABEL
from perfrun.common.enums import OutputChannel, RunKind, RunState
from perfrun.common.environment import Environment
from perfrun.common.exceptions import ProcessRuntimeError, ProcessSpawnError
from perfrun.common.mixins import PerfRunLoggerMixin
from perfrun.orchestrator.environment_resolver import EnvironmentResolver
from perfrun.orchestrator.launch import (
    LaunchPlan,
    build_single_run_plan,
    build_suite_plan,
)
from perfrun.orchestrator.models import (
    EnvironmentConfig,
    FailureOutcome,
    OutputEvent,
    ResultsAvailableEvent,
    RunCommand,
    RunExecution,
    RunOutcome,
    StoppedOutcome,
    SuccessOutcome,
)
from perfrun.orchestrator.notifications import NotificationDispatcher
from perfrun.orchestrator.output import OutputPipeline
from perfrun.orchestrator.registry import RunRecord, RunRegistry
from perfrun.orchestrator.supervisor import ProcessExit, ProcessSupervisor
from perfrun.orchestrator.workspace import RepositoryWorkspace, readable_timestamp

__all__ = ["RunLifecycleCoordinator"]

_STOP_SIGNALS = frozenset({signal.SIGTERM.name, signal.SIGKILL.name})


class RunLifecycleCoordinator(PerfRunLoggerMixin):
    """Starts runs, watches their processes and reports how they ended."""

    def __init__(
        self,
        resolver: EnvironmentResolver,
        supervisor: ProcessSupervisor,
        pipeline: OutputPipeline,
        dispatcher: NotificationDispatcher,
        workspace: RepositoryWorkspace,
        registry: RunRegistry | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.resolver = resolver
        self.supervisor = supervisor
        self.pipeline = pipeline
        self.dispatcher = dispatcher
        self.workspace = workspace
        self.registry = registry or RunRegistry()
        self._background_tasks: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Starting
    # -------------------------------------------------------------------------

    async def start(self, command: RunCommand) -> RunExecution:
        """Spawn the run's process and begin watching it.

        Raises:
            ToolNotFoundError: If the runner executable does not exist.
            ProcessSpawnError: If the process could not be started.
        """
        run_id = command.run_id
        self.info(
            f"Starting run {run_id} ({command.display_name}, profile {command.profile}, "
            f"{command.environment})"
        )
        env_config = self.resolver.resolve(
            command.repository_id,
            command.environment,
            command.profile,
            custom_host=command.custom_host,
            custom_token=command.custom_token,
            custom_vus=command.custom_vus,
            custom_duration=command.custom_duration,
        )
        plan = self._build_plan(command, env_config)
        self.debug(f"Launching run {run_id}: {plan.describe()} (cwd {plan.cwd})")

        process = await self.supervisor.spawn(
            plan.executable, list(plan.args), plan.cwd, plan.env
        )
        record = RunRecord(run_id=run_id, command=command, process=process, plan=plan)
        self.registry.register(run_id, record)
        self._publish_start_banner(record)

        record.watcher = self._spawn_background(
            self._watch(record), name=f"watch-{run_id}"
        )
        return record.to_execution()

    def _build_plan(
        self, command: RunCommand, env_config: EnvironmentConfig
    ) -> LaunchPlan:
        if command.kind == RunKind.SUITE:
            return build_suite_plan(command, env_config, self.workspace)
        try:
            self.workspace.ensure_results_dir(command.repository_id)
        except OSError as e:
            raise ProcessSpawnError(
                f"Cannot create results directory for '{command.repository_id}': {e}"
            ) from e
        return build_single_run_plan(command, env_config, self.workspace)

    def _publish_start_banner(self, record: RunRecord) -> None:
        command = record.command
        env_config = record.env_config
        if command.kind == RunKind.SUITE:
            lines = [
                f"Starting all tests with profile: {command.profile} (ID: {record.run_id})"
            ]
        else:
            lines = [
                f"Starting test: {command.test_name} with profile: {command.profile} "
                f"(ID: {record.run_id})"
            ]
        token_source = "Custom Token" if command.custom_token else "Default Token"
        lines.append(f"Environment: {command.environment} ({token_source})")
        load = f"Target: {env_config.host}, VUs: {env_config.vus}, duration: {env_config.duration}"
        if env_config.ramp_up:
            load += f", ramp-up: {env_config.ramp_up}"
        lines.append(load)
        lines.append(f"Started at: {readable_timestamp()}")
        if record.result_file is not None:
            lines.append(f"Results will be saved to: {record.result_file}")

        for line in lines:
            self.dispatcher.notify_output(
                record.run_id, OutputEvent.log(record.run_id, line)
            )

    # -------------------------------------------------------------------------
    # Watching
    # -------------------------------------------------------------------------

    async def _watch(self, record: RunRecord) -> None:
        pumps = [
            asyncio.create_task(
                self._pump(record, record.process.stdout, OutputChannel.LOG),
                name=f"pump-log-{record.run_id}",
            ),
            asyncio.create_task(
                self._pump(record, record.process.stderr, OutputChannel.ERROR),
                name=f"pump-error-{record.run_id}",
            ),
        ]
        try:
            await asyncio.gather(*pumps)
            process_exit = await record.process.wait()
        except asyncio.CancelledError:
            await self._abandon(record, pumps)
            self._finish(
                record,
                RunState.ERRORED,
                FailureOutcome(exit_code=-1, cause="monitoring cancelled"),
            )
            raise
        except Exception as e:
            self.exception(f"Monitoring of run {record.run_id} failed")
            await self._abandon(record, pumps)
            self._finish(
                record, RunState.ERRORED, FailureOutcome(exit_code=-1, cause=str(e))
            )
            return

        state, outcome = self._classify(record, process_exit)
        self._finish(record, state, outcome)

    async def _abandon(self, record: RunRecord, pumps: list[asyncio.Task]) -> None:
        """Kill a process that can no longer be monitored and reap it."""
        for pump in pumps:
            pump.cancel()
        await asyncio.gather(*pumps, return_exceptions=True)
        if record.process.kill(signal.SIGKILL):
            self.warning(f"Killed process {record.process.pid} of run {record.run_id}")
        try:
            await asyncio.wait_for(
                record.process.wait(), timeout=Environment.STOP.GRACE_PERIOD
            )
        except Exception:
            self.exception(
                f"Could not confirm exit of process {record.process.pid} of run {record.run_id}"
            )

    async def _pump(
        self,
        record: RunRecord,
        stream: asyncio.StreamReader | None,
        channel: OutputChannel,
    ) -> None:
        """Forward a stream line by line, carrying partial lines across reads."""
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        chunk_size = Environment.RUNNER.READ_CHUNK_SIZE
        pending = ""
        while True:
            try:
                data = await stream.read(chunk_size)
            except OSError as e:
                raise ProcessRuntimeError(f"Reading {channel} output failed: {e}") from e
            at_eof = not data
            text = pending + decoder.decode(data, final=at_eof)
            if at_eof:
                complete, pending = text, ""
            else:
                cut = max(text.rfind("\n"), text.rfind("\r")) + 1
                complete, pending = text[:cut], text[cut:]
            if complete:
                for event in self.pipeline.ingest(record.run_id, channel, complete):
                    self.dispatcher.notify_output(record.run_id, event)
            if at_eof:
                return

    def _classify(
        self, record: RunRecord, process_exit: ProcessExit
    ) -> tuple[RunState, RunOutcome]:
        if process_exit.signal in _STOP_SIGNALS or record.state == RunState.STOPPING:
            return RunState.STOPPED, StoppedOutcome(signal=process_exit.signal)
        if process_exit.success:
            return RunState.COMPLETED, SuccessOutcome()
        if process_exit.signal is not None:
            return RunState.FAILED, FailureOutcome(
                exit_code=-1, cause=f"terminated by {process_exit.signal}"
            )
        return RunState.FAILED, FailureOutcome(exit_code=process_exit.exit_code)

    def _finish(self, record: RunRecord, state: RunState, outcome: RunOutcome) -> None:
        if record.state.is_terminal:
            return
        run_id = record.run_id
        record.state = state
        self.registry.remove(run_id, expected=record)
        self.pipeline.discard(run_id)
        self.supervisor.release(record.process)
        if record.process.stdin is not None:
            record.process.stdin.close()

        if state == RunState.STOPPED:
            self.info(f"Run {run_id} stopped ({outcome.signal or 'exited after stop request'})")
            self.dispatcher.notify_stopped(run_id)
        else:
            if outcome.success:
                self.info(f"Run {run_id} completed successfully")
            else:
                self.warning(
                    f"Run {run_id} {state}: exit code {outcome.exit_code}"
                    + (f" ({outcome.cause})" if outcome.cause else "")
                )
            self.dispatcher.notify_completion(run_id, outcome)
        self.dispatcher.close(run_id)

        if outcome.success:
            self._spawn_background(
                self._announce_results(record), name=f"results-{run_id}"
            )

    async def _announce_results(self, record: RunRecord) -> None:
        command = record.command
        if command.kind == RunKind.SUITE:
            delay = Environment.RESULTS.SUITE_RUN_DELAY
            test_name = SUITE_RESULTS_LABEL
        else:
            delay = Environment.RESULTS.SINGLE_RUN_DELAY
            test_name = command.test_name
        await asyncio.sleep(delay)
        self.dispatcher.notify_results_available(
            ResultsAvailableEvent(
                message="New test results available",
                run_id=record.run_id,
                test_name=test_name,
                repository_id=command.repository_id,
                result_file=record.result_file,
                timestamp=datetime.now(timezone.utc).isoformat(),
            )
        )
        self.debug(f"Announced results of run {record.run_id}")

    def _spawn_background(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    # -------------------------------------------------------------------------
    # Control and queries
    # -------------------------------------------------------------------------

    def stop(self, run_id: str) -> bool:
        """Ask a run to stop. Returns immediately.

        False if the run is not registered, is already stopping, or its process
        has already exited.
        """
        record = self.registry.lookup(run_id)
        if record is None:
            self.info(f"Stop requested for unknown run {run_id}")
            return False
        if record.state != RunState.RUNNING:
            self.info(f"Run {run_id} is already {record.state}")
            return False

        record.state = RunState.STOPPING
        if not self.supervisor.stop(record.process):
            record.state = RunState.RUNNING
            return False
        self.pipeline.discard(run_id)
        self.info(f"Stopping run {run_id}")
        return True

    def is_running(self, run_id: str) -> bool:
        return self.registry.is_running(run_id)

    def list_active(self) -> list[str]:
        return self.registry.list_active()

    def get_execution(self, run_id: str) -> RunExecution | None:
        record = self.registry.lookup(run_id)
        return record.to_execution() if record else None

    async def wait_idle(self) -> None:
        """Wait for all runs, pending announcements and queued notifications."""
        while pending := [t for t in self._background_tasks if not t.done()]:
            await asyncio.gather(*pending, return_exceptions=True)
        await self.dispatcher.flush()

    async def shutdown(self) -> None:
        """Stop every active run and wait until all of them have been reported."""
        for run_id in self.list_active():
            self.stop(run_id)
        await self.wait_idle()
        await self.dispatcher.aclose()
