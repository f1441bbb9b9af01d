# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Data models for run orchestration."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from perfrun.common.constants import (
    DEFAULT_DURATION,
    DEFAULT_HOST,
    DEFAULT_PROFILE_NAME,
    DEFAULT_TOKEN,
    DEFAULT_VUS,
    MILLIS_PER_SECOND,
    SUITE_TEST_NAME,
)
from perfrun.common.enums import (
    OutcomeKind,
    OutputChannel,
    RunKind,
    RunState,
    TargetEnvironment,
)

__all__ = [
    "EnvironmentConfig",
    "FailureOutcome",
    "LoadProfile",
    "OutputEvent",
    "ResultsAvailableEvent",
    "RunCommand",
    "RunExecution",
    "RunOutcome",
    "StoppedOutcome",
    "SuccessOutcome",
]

# Single path segment: no separators, no leading dot.
_PATH_SEGMENT = r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunCommand(BaseModel):
    """Immutable description of a run request.

    Attributes:
        kind: Whether a single test script or the whole suite is run
        test_name: Test script name without suffix; required iff kind is single
        profile: Load profile name (e.g. "LIGHT")
        environment: Target environment
        repository_id: Repository whose tests and configuration are used
        custom_token: Token that overrides the repository configuration
        custom_host: Host that overrides the repository configuration
        custom_vus: Virtual user count that overrides the load profile
        custom_duration: Duration that overrides the load profile
        explicit_run_id: Run identity chosen by the caller
        issued_at: When the command was created; feeds the derived run identity
    """

    model_config = ConfigDict(frozen=True)

    kind: RunKind
    test_name: Annotated[str, Field(pattern=_PATH_SEGMENT)] | None = None
    profile: str = DEFAULT_PROFILE_NAME
    environment: TargetEnvironment = TargetEnvironment.PROD
    repository_id: Annotated[str, Field(pattern=_PATH_SEGMENT)]
    custom_token: str | None = None
    custom_host: str | None = None
    custom_vus: Annotated[int, Field(gt=0)] | None = None
    custom_duration: str | None = None
    explicit_run_id: Annotated[str, Field(min_length=1)] | None = None
    issued_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _check_test_name_matches_kind(self) -> "RunCommand":
        if self.kind == RunKind.SINGLE and not self.test_name:
            raise ValueError("test_name is required for a single test run")
        if self.kind == RunKind.SUITE and self.test_name is not None:
            raise ValueError("test_name must not be set for a suite run")
        return self

    @classmethod
    def single(cls, test_name: str, repository_id: str, **kwargs) -> "RunCommand":
        return cls(
            kind=RunKind.SINGLE,
            test_name=test_name,
            repository_id=repository_id,
            **kwargs,
        )

    @classmethod
    def suite(cls, repository_id: str, **kwargs) -> "RunCommand":
        return cls(kind=RunKind.SUITE, repository_id=repository_id, **kwargs)

    @property
    def display_name(self) -> str:
        return self.test_name or SUITE_TEST_NAME

    @property
    def run_id(self) -> str:
        """Run identity: the explicit id, else repository, name and issue time in ms.

        Derived ids are only as unique as the millisecond clock.
        """
        if self.explicit_run_id:
            return self.explicit_run_id
        issued_ms = int(self.issued_at.timestamp() * MILLIS_PER_SECOND)
        return f"{self.repository_id}-{self.display_name}-{issued_ms}"


class LoadProfile(BaseModel):
    """Named load shape."""

    model_config = ConfigDict(frozen=True)

    vus: int
    duration: str
    ramp_up: str | None = None


class EnvironmentConfig(BaseModel):
    """Concrete values injected into a run. Never persisted."""

    model_config = ConfigDict(frozen=True)

    host: str = DEFAULT_HOST
    token: str = DEFAULT_TOKEN
    vus: int = DEFAULT_VUS
    duration: str = DEFAULT_DURATION
    ramp_up: str | None = None

    @property
    def has_token(self) -> bool:
        return bool(self.token)


class OutputEvent(BaseModel):
    """One cleaned line of process output on its way to a notifier."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    channel: OutputChannel
    text: str
    timestamp: datetime = Field(default_factory=_utcnow)

    @classmethod
    def log(cls, run_id: str, text: str) -> "OutputEvent":
        return cls(run_id=run_id, channel=OutputChannel.LOG, text=text)

    @classmethod
    def error(cls, run_id: str, text: str) -> "OutputEvent":
        return cls(run_id=run_id, channel=OutputChannel.ERROR, text=text)


class SuccessOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[OutcomeKind.SUCCESS] = OutcomeKind.SUCCESS
    exit_code: int = 0

    @property
    def success(self) -> bool:
        return True


class FailureOutcome(BaseModel):
    """Non-zero exit, or -1 with a cause when the process could not be monitored."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[OutcomeKind.FAILURE] = OutcomeKind.FAILURE
    exit_code: int
    cause: str | None = None

    @property
    def success(self) -> bool:
        return False


class StoppedOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[OutcomeKind.STOPPED] = OutcomeKind.STOPPED
    signal: str | None = Field(
        default=None,
        description="Signal that ended the process, or None when it exited on its own after a stop request or the signal is not known.",
    )

    @property
    def success(self) -> bool:
        return False


RunOutcome = Annotated[
    SuccessOutcome | FailureOutcome | StoppedOutcome, Field(discriminator="kind")
]


class ResultsAvailableEvent(BaseModel):
    """Announces that a run's result artifact should now be readable."""

    model_config = ConfigDict(frozen=True)

    message: str
    run_id: str
    test_name: str
    repository_id: str
    result_file: Path | None = None
    timestamp: str


class RunExecution(BaseModel):
    """Snapshot of a run handed back to the caller that started it."""

    run_id: str
    kind: RunKind
    test_name: str
    profile: str
    environment: TargetEnvironment
    repository_id: str
    start_time: datetime
    state: RunState
    pid: int | None = None
    result_file: Path | None = None
