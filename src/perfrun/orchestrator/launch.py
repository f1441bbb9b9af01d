# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Command lines and process environments for runner processes."""

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from perfrun.common.environment import Environment
from perfrun.common.logging import redact
from perfrun.orchestrator.models import EnvironmentConfig, RunCommand
from perfrun.orchestrator.workspace import RepositoryWorkspace

__all__ = [
    "LaunchPlan",
    "build_process_env",
    "build_single_run_plan",
    "build_suite_plan",
]

_TERM = "xterm-256color"


@dataclass(frozen=True)
class LaunchPlan:
    """Everything needed to spawn one runner process."""

    executable: str
    args: tuple[str, ...]
    cwd: Path
    env: dict[str, str] = field(repr=False)
    env_config: EnvironmentConfig = field(repr=False)
    result_file: Path | None = None

    def describe(self) -> str:
        """Shell-style command line with secrets redacted, for logs."""
        secrets = {self.env_config.token} - {""}
        parts = [self.executable]
        for arg in self.args:
            name, sep, value = arg.partition("=")
            if sep and value in secrets:
                arg = f"{name}={redact(value)}"
            parts.append(arg)
        return shlex.join(parts)


def build_process_env(
    command: RunCommand,
    env_config: EnvironmentConfig,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Inherited environment plus the variables the test scripts read."""
    env = dict(os.environ if base_env is None else base_env)
    env.update(
        TERM=_TERM,
        CURRENT_HOST=env_config.host,
        CURRENT_TOKEN=env_config.token,
        PROFILE=command.profile,
        ENVIRONMENT=str(command.environment),
        VUS=str(env_config.vus),
        DURATION=env_config.duration,
        LOG_LEVEL=Environment.RUNNER.RUNNER_LOG_LEVEL,
    )
    return env


def build_single_run_plan(
    command: RunCommand,
    env_config: EnvironmentConfig,
    workspace: RepositoryWorkspace,
    timestamp: str | None = None,
    base_env: Mapping[str, str] | None = None,
) -> LaunchPlan:
    """``k6 run <test>.js ...`` executed from the repository's tests directory."""
    test_name = command.test_name
    result_file = workspace.result_file(command.repository_id, test_name, timestamp)

    args = [
        "run",
        workspace.test_script(command.repository_id, test_name).name,
        "-e", f"PROFILE={command.profile}",
        "-e", f"ENVIRONMENT={command.environment}",
        "-e", f"LOG_LEVEL={Environment.RUNNER.RUNNER_LOG_LEVEL}",
        "--summary-export", str(result_file),
        "-e", f"CURRENT_HOST={env_config.host}",
    ]  # fmt: skip
    if env_config.token:
        args += ["-e", f"CURRENT_TOKEN={env_config.token}"]
    args += ["-e", f"VUS={env_config.vus}", "-e", f"DURATION={env_config.duration}"]
    if env_config.ramp_up:
        args += ["-e", f"RAMP_UP={env_config.ramp_up}"]
    if command.custom_token:
        args += ["-e", f"CUSTOM_TOKEN={command.custom_token}"]

    return LaunchPlan(
        executable=Environment.RUNNER.EXECUTABLE,
        args=tuple(args),
        cwd=workspace.tests_dir(command.repository_id),
        env=build_process_env(command, env_config, base_env),
        env_config=env_config,
        result_file=result_file,
    )


def build_suite_plan(
    command: RunCommand,
    env_config: EnvironmentConfig,
    workspace: RepositoryWorkspace,
    base_env: Mapping[str, str] | None = None,
) -> LaunchPlan:
    """``bash <repo>/run.sh all <profile>`` executed from the repository root."""
    return LaunchPlan(
        executable=Environment.RUNNER.SHELL,
        args=(str(workspace.suite_script(command.repository_id)), "all", command.profile),
        cwd=workspace.repository_dir(command.repository_id),
        env=build_process_env(command, env_config, base_env),
        env_config=env_config,
    )
