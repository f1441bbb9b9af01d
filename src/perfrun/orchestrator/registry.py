# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Registry of active runs."""

import asyncio
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from perfrun.common.enums import RunState
from perfrun.orchestrator.models import EnvironmentConfig, RunCommand, RunExecution

if TYPE_CHECKING:
    from perfrun.orchestrator.launch import LaunchPlan
    from perfrun.orchestrator.supervisor import ProcessHandle

__all__ = ["RunRecord", "RunRegistry"]


@dataclass
class RunRecord:
    """Everything the coordinator tracks for one active run."""

    run_id: str
    command: RunCommand
    process: "ProcessHandle"
    plan: "LaunchPlan"
    state: RunState = RunState.RUNNING
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    watcher: asyncio.Task | None = None

    @property
    def result_file(self) -> Path | None:
        return self.plan.result_file

    @property
    def env_config(self) -> EnvironmentConfig:
        return self.plan.env_config

    def to_execution(self) -> RunExecution:
        return RunExecution(
            run_id=self.run_id,
            kind=self.command.kind,
            test_name=self.command.display_name,
            profile=self.command.profile,
            environment=self.command.environment,
            repository_id=self.command.repository_id,
            start_time=self.start_time,
            state=self.state,
            pid=self.process.pid,
            result_file=self.result_file,
        )


class RunRegistry:
    """Lock-guarded map from run identity to :class:`RunRecord`.

    Registering an identity that is already present replaces the old record.
    """

    def __init__(self) -> None:
        self._runs: dict[str, RunRecord] = {}
        self._lock = threading.Lock()

    def register(self, run_id: str, record: RunRecord) -> None:
        with self._lock:
            self._runs[run_id] = record

    def lookup(self, run_id: str) -> RunRecord | None:
        with self._lock:
            return self._runs.get(run_id)

    def remove(
        self, run_id: str, expected: RunRecord | None = None
    ) -> RunRecord | None:
        """Remove and return the record, or None if absent.

        With ``expected``, the entry is only removed if it is that exact record,
        so a finished run never evicts a newer run registered under its identity.
        """
        with self._lock:
            current = self._runs.get(run_id)
            if current is None or (expected is not None and current is not expected):
                return None
            return self._runs.pop(run_id)

    def list_active(self) -> list[str]:
        with self._lock:
            return list(self._runs)

    def is_running(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._runs

    def __contains__(self, run_id: object) -> bool:
        with self._lock:
            return run_id in self._runs

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)
