# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Use cases for running and stopping tests."""

from perfrun.common.constants import RESOLVABLE_ENVIRONMENTS
from perfrun.common.enums import RunKind
from perfrun.common.exceptions import (
    AlreadyRunningError,
    InvalidCommandError,
    ScriptNotFoundError,
)
from perfrun.common.mixins import PerfRunLoggerMixin
from perfrun.orchestrator.coordinator import RunLifecycleCoordinator
from perfrun.orchestrator.models import RunCommand, RunExecution
from perfrun.orchestrator.workspace import RepositoryWorkspace

__all__ = ["RunService"]


class RunService(PerfRunLoggerMixin):
    """Validates run requests before handing them to the coordinator.

    Every check happens before a process exists, so failures surface as
    exceptions to the caller rather than as notifications.
    """

    def __init__(
        self,
        coordinator: RunLifecycleCoordinator,
        workspace: RepositoryWorkspace,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.coordinator = coordinator
        self.workspace = workspace

    async def execute_test(self, command: RunCommand) -> RunExecution:
        """Run a single test script.

        Raises:
            InvalidCommandError: If the command is not a single-test command or
                targets an environment that needs an explicit host.
            ScriptNotFoundError: If the test script does not exist.
            AlreadyRunningError: If a run with the same identity is active.
        """
        if command.kind != RunKind.SINGLE:
            raise InvalidCommandError(
                f"execute_test expects a {RunKind.SINGLE} command, got {command.kind}"
            )
        self.info(
            f"Executing test '{command.test_name}' from '{command.repository_id}' "
            f"with profile {command.profile} on {command.environment}"
        )
        if not self.workspace.test_exists(command.repository_id, command.test_name):
            self.warning(
                f"Test script not found: "
                f"{self.workspace.test_script(command.repository_id, command.test_name)}"
            )
            raise ScriptNotFoundError(command.test_name, command.repository_id)
        return await self._start(command)

    async def execute_suite(self, command: RunCommand) -> RunExecution:
        """Run every test of a repository through its suite script.

        Raises:
            InvalidCommandError: If the command is not a suite command or
                targets an environment that needs an explicit host.
            ScriptNotFoundError: If the repository has no suite script.
            AlreadyRunningError: If a run with the same identity is active.
        """
        if command.kind != RunKind.SUITE:
            raise InvalidCommandError(
                f"execute_suite expects a {RunKind.SUITE} command, got {command.kind}"
            )
        self.info(
            f"Executing all tests from '{command.repository_id}' "
            f"with profile {command.profile} on {command.environment}"
        )
        if not self.workspace.suite_exists(command.repository_id):
            suite_script = self.workspace.suite_script(command.repository_id)
            self.warning(f"Suite script not found: {suite_script}")
            raise ScriptNotFoundError(suite_script.name, command.repository_id)
        return await self._start(command)

    async def _start(self, command: RunCommand) -> RunExecution:
        if str(command.environment) not in RESOLVABLE_ENVIRONMENTS and not command.custom_host:
            raise InvalidCommandError(
                f"Environment {command.environment} has no repository host; "
                f"pass a custom host to run against it"
            )
        run_id = command.run_id
        if self.coordinator.is_running(run_id):
            raise AlreadyRunningError(run_id)
        execution = await self.coordinator.start(command)
        self.info(f"Run {run_id} started with PID {execution.pid}")
        return execution

    def stop(self, run_id: str) -> bool:
        self.info(f"Stop requested for run {run_id}")
        return self.coordinator.stop(run_id)

    def running_runs(self) -> list[str]:
        return self.coordinator.list_active()

    def is_running(self, run_id: str) -> bool:
        return self.coordinator.is_running(run_id)
