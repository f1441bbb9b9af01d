# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Command line interface: ``perfrun run``, ``perfrun suite`` and ``perfrun resolve``."""

import sys
from pathlib import Path
from typing import Annotated

from cyclopts import App, Parameter
from pydantic import ValidationError

from perfrun import __version__
from perfrun.cli_utils import raise_startup_error_and_exit
from perfrun.common.constants import DEFAULT_PROFILE_NAME
from perfrun.common.enums import RunKind, TargetEnvironment
from perfrun.orchestrator.models import RunCommand

app = App(
    name="perfrun",
    help="Run k6 performance tests from checked-out test repositories.",
    version=__version__,
)

RepositoryOption = Annotated[
    str, Parameter(name=("--repository", "-r"), help="Repository id under the tests root.")
]
ProfileOption = Annotated[
    str, Parameter(name=("--profile", "-p"), help="Load profile name, e.g. LIGHT, MEDIUM, HEAVY.")
]
EnvironmentOption = Annotated[
    TargetEnvironment,
    Parameter(name=("--environment", "-e"), help="Target environment."),
]
HostOption = Annotated[
    str | None, Parameter(name="--host", help="Host overriding the repository configuration.")
]
TokenOption = Annotated[
    str | None, Parameter(name="--token", help="Token overriding the repository configuration.")
]
VusOption = Annotated[
    int | None, Parameter(name="--vus", help="Virtual users overriding the load profile.")
]
DurationOption = Annotated[
    str | None, Parameter(name="--duration", help="Duration overriding the load profile, e.g. 30s.")
]
TestsRootOption = Annotated[
    Path | None,
    Parameter(name="--tests-root", help="Directory holding repositories/<id>. Defaults to PERFRUN_RUNNER_TESTS_ROOT."),
]
RunIdOption = Annotated[
    str | None, Parameter(name="--run-id", help="Explicit run identity.")
]
EventsFileOption = Annotated[
    Path | None,
    Parameter(name="--events-file", help="Append every notification to this file as JSON lines."),
]
LogLevelOption = Annotated[
    str | None, Parameter(name="--log-level", help="TRACE, DEBUG, INFO, WARNING or ERROR.")
]


def _build_command(kind: RunKind, test_name: str | None = None, **fields) -> RunCommand:
    try:
        if kind == RunKind.SUITE:
            return RunCommand.suite(**fields)
        return RunCommand.single(test_name, **fields)
    except ValidationError as e:
        raise_startup_error_and_exit(str(e), title="Invalid Run Request")


@app.command
def run(
    test: str,
    *,
    repository: RepositoryOption,
    profile: ProfileOption = DEFAULT_PROFILE_NAME,
    environment: EnvironmentOption = TargetEnvironment.PROD,
    host: HostOption = None,
    token: TokenOption = None,
    vus: VusOption = None,
    duration: DurationOption = None,
    run_id: RunIdOption = None,
    tests_root: TestsRootOption = None,
    events_file: EventsFileOption = None,
    log_level: LogLevelOption = None,
) -> int:
    """Run a single test script and stream its output.

    Args:
        test: Test script name without the .js suffix.
    """
    from perfrun.cli_runner import run_command

    command = _build_command(
        RunKind.SINGLE,
        test,
        repository_id=repository,
        profile=profile,
        environment=environment,
        custom_host=host,
        custom_token=token,
        custom_vus=vus,
        custom_duration=duration,
        explicit_run_id=run_id,
    )
    return run_command(command, events_file, tests_root, log_level)


@app.command
def suite(
    *,
    repository: RepositoryOption,
    profile: ProfileOption = DEFAULT_PROFILE_NAME,
    environment: EnvironmentOption = TargetEnvironment.PROD,
    host: HostOption = None,
    token: TokenOption = None,
    run_id: RunIdOption = None,
    tests_root: TestsRootOption = None,
    events_file: EventsFileOption = None,
    log_level: LogLevelOption = None,
) -> int:
    """Run all tests of a repository through its suite script."""
    from perfrun.cli_runner import run_command

    command = _build_command(
        RunKind.SUITE,
        repository_id=repository,
        profile=profile,
        environment=environment,
        custom_host=host,
        custom_token=token,
        explicit_run_id=run_id,
    )
    return run_command(command, events_file, tests_root, log_level)


@app.command
def resolve(
    *,
    repository: RepositoryOption,
    profile: ProfileOption = DEFAULT_PROFILE_NAME,
    environment: EnvironmentOption = TargetEnvironment.PROD,
    host: HostOption = None,
    token: TokenOption = None,
    vus: VusOption = None,
    duration: DurationOption = None,
    tests_root: TestsRootOption = None,
) -> None:
    """Show the host, token and load shape a run would use."""
    from perfrun.cli_runner import print_resolved_environment

    print_resolved_environment(
        repository,
        environment,
        profile,
        host=host,
        token=token,
        vus=vus,
        duration=duration,
        tests_root=tests_root,
    )


def main() -> None:
    sys.exit(app())


if __name__ == "__main__":
    main()
