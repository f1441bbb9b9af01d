# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Environment-driven settings for perfrun.

All settings are read once at import time from ``PERFRUN_*`` environment
variables (and an optional ``.env`` file). Each group of settings lives in its
own nested ``BaseSettings`` class so that it can be overridden independently:

    PERFRUN_RUNNER_EXECUTABLE=/usr/local/bin/k6
    PERFRUN_STOP_GRACE_PERIOD=10
    PERFRUN_OUTPUT_ERROR_LINE_CAP=100

Tests override individual values with ``monkeypatch.setattr(Environment.STOP,
"GRACE_PERIOD", 0.1)``.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Environment"]


class _RunnerSettings(BaseSettings):
    """Settings for locating and invoking the external load-test runner."""

    model_config = SettingsConfigDict(
        env_prefix="PERFRUN_RUNNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    EXECUTABLE: str = Field(
        "k6",
        description="Name or path of the load-test runner executable used for single test runs.",
    )
    SHELL: str = Field(
        "bash",
        description="Shell used to execute a repository's suite script.",
    )
    TESTS_ROOT: Path = Field(
        Path("./k6-tests"),
        description="Root directory holding the `repositories/<id>` checkouts.",
    )
    SUITE_SCRIPT: str = Field(
        "run.sh",
        description="Name of the suite script at the root of each repository.",
    )
    TEST_FILE_SUFFIX: str = Field(
        ".js",
        description="File suffix of test scripts inside a repository's `tests` directory.",
    )
    RUNNER_LOG_LEVEL: str = Field(
        "error",
        description="Value injected as LOG_LEVEL into the runner.",
    )
    READ_CHUNK_SIZE: int = Field(
        64 * 1024,
        ge=1,
        description="Maximum number of bytes read from a process stream at once.",
    )


class _StopSettings(BaseSettings):
    """Settings for stopping runs."""

    model_config = SettingsConfigDict(
        env_prefix="PERFRUN_STOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    GRACE_PERIOD: float = Field(
        5.0,
        ge=0,
        description="Seconds to wait after SIGTERM before a run's process is sent SIGKILL.",
    )


class _OutputSettings(BaseSettings):
    """Settings for streaming process output to notifiers."""

    model_config = SettingsConfigDict(
        env_prefix="PERFRUN_OUTPUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ERROR_LINE_CAP: int = Field(
        50,
        ge=0,
        description="Maximum number of error lines counted per run before all further error lines are suppressed.",
    )
    ERROR_MIN_INTERVAL: float = Field(
        1.0,
        ge=0,
        description="Minimum number of seconds between two forwarded error lines of the same run.",
    )
    MAX_PENDING_NOTIFICATIONS: int = Field(
        1000,
        ge=1,
        description="Output events queued per run before new output events are dropped.",
    )


class _ResultsSettings(BaseSettings):
    """Settings for result files and results-available announcements."""

    model_config = SettingsConfigDict(
        env_prefix="PERFRUN_RESULTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    SINGLE_RUN_DELAY: float = Field(
        2.0,
        ge=0,
        description="Seconds between a successful single run and its results-available announcement.",
    )
    SUITE_RUN_DELAY: float = Field(
        3.0,
        ge=0,
        description="Seconds between a successful suite run and its results-available announcement.",
    )
    TIMEZONE: str = Field(
        "Europe/Warsaw",
        description="IANA time zone used for result file timestamps and start banners.",
    )


class _LoggingSettings(BaseSettings):
    """Settings for console logging."""

    model_config = SettingsConfigDict(
        env_prefix="PERFRUN_LOGGING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    LEVEL: str = Field(
        "INFO",
        description="Root log level (TRACE, DEBUG, INFO, WARNING, ERROR).",
    )
    RICH_TRACEBACKS: bool = Field(
        True,
        description="Render exception tracebacks with rich.",
    )


class _Environment(BaseSettings):
    """Root settings object. Access sub-settings as ``Environment.RUNNER`` etc."""

    model_config = SettingsConfigDict(
        env_prefix="PERFRUN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    RUNNER: _RunnerSettings = Field(default_factory=_RunnerSettings)
    STOP: _StopSettings = Field(default_factory=_StopSettings)
    OUTPUT: _OutputSettings = Field(default_factory=_OutputSettings)
    RESULTS: _ResultsSettings = Field(default_factory=_ResultsSettings)
    LOGGING: _LoggingSettings = Field(default_factory=_LoggingSettings)


Environment = _Environment()
