# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Run orchestration: resolving, spawning, watching and reporting test runs."""

from perfrun.orchestrator.coordinator import RunLifecycleCoordinator
from perfrun.orchestrator.environment_resolver import EnvironmentResolver
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
from perfrun.orchestrator.notifications import (
    NotificationDispatcher,
    NotificationPort,
)
from perfrun.orchestrator.output import OutputPipeline
from perfrun.orchestrator.registry import RunRecord, RunRegistry
from perfrun.orchestrator.repository_config import (
    FileSystemRepositoryConfigSource,
    RepositoryConfig,
    RepositoryConfigPort,
    parse_repository_config,
)
from perfrun.orchestrator.service import RunService
from perfrun.orchestrator.supervisor import (
    ProcessExit,
    ProcessHandle,
    ProcessSupervisor,
)
from perfrun.orchestrator.workspace import RepositoryWorkspace

__all__ = [
    "EnvironmentConfig",
    "EnvironmentResolver",
    "FailureOutcome",
    "FileSystemRepositoryConfigSource",
    "NotificationDispatcher",
    "NotificationPort",
    "OutputEvent",
    "OutputPipeline",
    "ProcessExit",
    "ProcessHandle",
    "ProcessSupervisor",
    "RepositoryConfig",
    "RepositoryConfigPort",
    "RepositoryWorkspace",
    "ResultsAvailableEvent",
    "RunCommand",
    "RunExecution",
    "RunLifecycleCoordinator",
    "RunOutcome",
    "RunRecord",
    "RunRegistry",
    "RunService",
    "StoppedOutcome",
    "SuccessOutcome",
    "parse_repository_config",
]
