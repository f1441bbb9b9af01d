# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

import asyncio
import signal
from pathlib import Path

from rich.console import Console
from rich.table import Table

from perfrun.cli_utils import raise_startup_error_and_exit
from perfrun.common.enums import RunKind, TargetEnvironment
from perfrun.common.exceptions import PerfRunError, ToolNotFoundError
from perfrun.common.logging import redact, setup_rich_logging
from perfrun.common.perfrun_logger import PerfRunLogger
from perfrun.orchestrator.coordinator import RunLifecycleCoordinator
from perfrun.orchestrator.environment_resolver import EnvironmentResolver
from perfrun.orchestrator.models import RunCommand, RunOutcome, StoppedOutcome
from perfrun.orchestrator.notifications import NotificationDispatcher, NotificationPort
from perfrun.orchestrator.notifiers import (
    CompositeNotifier,
    ConsoleNotifier,
    JsonLinesNotifier,
)
from perfrun.orchestrator.output import OutputPipeline
from perfrun.orchestrator.repository_config import FileSystemRepositoryConfigSource
from perfrun.orchestrator.service import RunService
from perfrun.orchestrator.supervisor import ProcessSupervisor
from perfrun.orchestrator.workspace import RepositoryWorkspace

logger = PerfRunLogger(__name__)

EXIT_STOPPED = 130


def build_run_service(
    notifier: NotificationPort, tests_root: Path | str | None = None
) -> RunService:
    """Wire the orchestration components around a notifier."""
    workspace = RepositoryWorkspace(tests_root)
    coordinator = RunLifecycleCoordinator(
        resolver=EnvironmentResolver(FileSystemRepositoryConfigSource(workspace)),
        supervisor=ProcessSupervisor(),
        pipeline=OutputPipeline(),
        dispatcher=NotificationDispatcher(notifier),
        workspace=workspace,
    )
    return RunService(coordinator, workspace)


def exit_code_for(outcome: RunOutcome | None) -> int:
    """Process exit status that mirrors how a run ended."""
    if outcome is None:
        return 1
    if isinstance(outcome, StoppedOutcome):
        return EXIT_STOPPED
    if outcome.success:
        return 0
    return outcome.exit_code if outcome.exit_code > 0 else 1


def run_command(
    command: RunCommand,
    events_file: Path | None = None,
    tests_root: Path | None = None,
    log_level: str | None = None,
) -> int:
    """Run a single test or a suite in the foreground and return an exit status."""
    setup_rich_logging(log_level)
    return asyncio.run(_run_command(command, events_file, tests_root))


async def _run_command(
    command: RunCommand, events_file: Path | None, tests_root: Path | None
) -> int:
    console_notifier = ConsoleNotifier()
    json_notifier = JsonLinesNotifier(events_file) if events_file else None
    notifier = (
        CompositeNotifier(console_notifier, json_notifier)
        if json_notifier
        else console_notifier
    )
    service = build_run_service(notifier, tests_root)
    coordinator = service.coordinator

    try:
        if command.kind == RunKind.SUITE:
            execution = await service.execute_suite(command)
        else:
            execution = await service.execute_test(command)
    except PerfRunError as e:
        await coordinator.shutdown()
        if json_notifier:
            json_notifier.close()
        title = (
            "Runner Not Found"
            if isinstance(e, ToolNotFoundError)
            else "Unable to Start Run"
        )
        raise_startup_error_and_exit(str(e), title=title)

    loop = asyncio.get_running_loop()
    handled_signals = (signal.SIGINT, signal.SIGTERM)
    for sig in handled_signals:
        loop.add_signal_handler(sig, service.stop, execution.run_id)

    try:
        await coordinator.wait_idle()
    except Exception:
        logger.exception(f"Error while waiting for run {execution.run_id}")
        raise
    finally:
        for sig in handled_signals:
            loop.remove_signal_handler(sig)
        await coordinator.shutdown()
        if json_notifier:
            json_notifier.close()

    return exit_code_for(console_notifier.outcomes.get(execution.run_id))


def print_resolved_environment(
    repository_id: str,
    environment: TargetEnvironment,
    profile: str,
    host: str | None = None,
    token: str | None = None,
    vus: int | None = None,
    duration: str | None = None,
    tests_root: Path | None = None,
    console: Console | None = None,
) -> None:
    """Show what a run would be started with, without starting it."""
    workspace = RepositoryWorkspace(tests_root)
    config_source = FileSystemRepositoryConfigSource(workspace)
    env_config = EnvironmentResolver(config_source).resolve(
        repository_id,
        environment,
        profile,
        custom_host=host,
        custom_token=token,
        custom_vus=vus,
        custom_duration=duration,
    )

    table = Table(title=f"{repository_id} / {environment} / {profile}")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("Host", env_config.host)
    table.add_row("Token", redact(env_config.token))
    table.add_row("VUs", str(env_config.vus))
    table.add_row("Duration", env_config.duration)
    table.add_row("Ramp-up", env_config.ramp_up or "-")
    tests = workspace.list_tests(repository_id)
    table.add_row("Tests", ", ".join(tests) if tests else "-")
    (console or Console()).print(table)
