# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

from enum import Enum


class CaseInsensitiveStrEnum(str, Enum):
    """String enum that accepts any casing of its values when parsing."""

    def __str__(self) -> str:
        return self.value

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return None


class RunKind(CaseInsensitiveStrEnum):
    """What a run executes."""

    SINGLE = "single"
    SUITE = "suite"


class TargetEnvironment(CaseInsensitiveStrEnum):
    """Environment a run is pointed at."""

    PROD = "PROD"
    DEV = "DEV"
    STAGING = "STAGING"


class TokenRole(CaseInsensitiveStrEnum):
    USER = "USER"
    ADMIN = "ADMIN"


class OutputChannel(CaseInsensitiveStrEnum):
    """Process stream an output line came from."""

    LOG = "log"
    ERROR = "error"


class RunState(CaseInsensitiveStrEnum):
    """Lifecycle state of a run."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    COMPLETED = "completed"
    FAILED = "failed"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_RUN_STATES


_TERMINAL_RUN_STATES = frozenset(
    {RunState.STOPPED, RunState.COMPLETED, RunState.FAILED, RunState.ERRORED}
)


class OutcomeKind(CaseInsensitiveStrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    STOPPED = "stopped"
