# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0


class PerfRunError(Exception):
    """Base class for all perfrun exceptions."""

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {super().__str__()}"


class InvalidCommandError(PerfRunError):
    """A run request is inconsistent or cannot be resolved."""


class ScriptNotFoundError(PerfRunError):
    """The requested test script or suite script does not exist."""

    def __init__(self, name: str, repository_id: str) -> None:
        super().__init__(f"Test '{name}' not found in repository '{repository_id}'")
        self.name = name
        self.repository_id = repository_id


class AlreadyRunningError(PerfRunError):
    """A run with the same identity is still registered."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run '{run_id}' is already running")
        self.run_id = run_id


class ProcessSpawnError(PerfRunError):
    """The external process could not be started."""


class ToolNotFoundError(ProcessSpawnError):
    """The external executable is not installed or not on PATH."""

    def __init__(self, executable: str) -> None:
        super().__init__(
            f"'{executable}' is not installed or not found in PATH. "
            f"Install it or point PERFRUN_RUNNER_EXECUTABLE / PERFRUN_RUNNER_SHELL at it."
        )
        self.executable = executable


class ProcessRuntimeError(PerfRunError):
    """The external process could not be monitored after it was started."""
