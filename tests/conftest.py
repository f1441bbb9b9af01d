# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest

from perfrun.common.environment import Environment
from perfrun.orchestrator.coordinator import RunLifecycleCoordinator
from perfrun.orchestrator.environment_resolver import EnvironmentResolver
from perfrun.orchestrator.notifications import NotificationDispatcher
from perfrun.orchestrator.output import OutputPipeline
from perfrun.orchestrator.repository_config import FileSystemRepositoryConfigSource
from perfrun.orchestrator.service import RunService
from perfrun.orchestrator.workspace import RepositoryWorkspace
from tests.harness.utils import FakeSupervisor, RecordingNotifier, write_repository


@pytest.fixture
def tests_root(tmp_path):
    """Tests root with a ``shop`` repository holding a ``checkout`` test."""
    write_repository(tmp_path)
    return tmp_path


@pytest.fixture
def workspace(tests_root) -> RepositoryWorkspace:
    return RepositoryWorkspace(tests_root)


@pytest.fixture
def fast_results(monkeypatch):
    """Shrink the results-available delays so tests stay quick."""
    monkeypatch.setattr(Environment.RESULTS, "SINGLE_RUN_DELAY", 0.02)
    monkeypatch.setattr(Environment.RESULTS, "SUITE_RUN_DELAY", 0.03)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def coordinator(workspace, supervisor, notifier, fast_results) -> RunLifecycleCoordinator:
    return RunLifecycleCoordinator(
        resolver=EnvironmentResolver(FileSystemRepositoryConfigSource(workspace)),
        supervisor=supervisor,
        pipeline=OutputPipeline(error_line_cap=50, error_min_interval=1.0),
        dispatcher=NotificationDispatcher(notifier),
        workspace=workspace,
    )


@pytest.fixture
def service(coordinator, workspace) -> RunService:
    return RunService(coordinator, workspace)
