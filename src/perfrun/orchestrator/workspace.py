# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Directory layout of checked-out test repositories.

Every repository lives under ``<tests_root>/repositories/<repository_id>``::

    run.sh              suite script, invoked as ``run.sh all <profile>``
    config/env.js       hosts, tokens and load profiles
    tests/<name>.js     individual test scripts
    results/            summary exports, ``<YYYYMMDD_HHMMSS>_<name>.json``
"""

import logging
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from perfrun.common.environment import Environment

logger = logging.getLogger(__name__)

__all__ = [
    "RepositoryWorkspace",
    "generate_timestamp",
    "readable_timestamp",
]

_FILE_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
_READABLE_TIMESTAMP_FORMAT = "%d.%m.%Y, %H:%M:%S"


def _now(now: datetime | None = None) -> datetime:
    tz = ZoneInfo(Environment.RESULTS.TIMEZONE)
    if now is None:
        return datetime.now(tz)
    return now.astimezone(tz)


def generate_timestamp(now: datetime | None = None) -> str:
    """Timestamp used in result file names, in the configured time zone."""
    return _now(now).strftime(_FILE_TIMESTAMP_FORMAT)


def readable_timestamp(now: datetime | None = None) -> str:
    """Human readable timestamp for start banners."""
    return _now(now).strftime(_READABLE_TIMESTAMP_FORMAT)


class RepositoryWorkspace:
    """Resolves paths of a repository's scripts, configuration and results."""

    def __init__(self, tests_root: Path | str | None = None) -> None:
        self.tests_root = Path(
            tests_root if tests_root is not None else Environment.RUNNER.TESTS_ROOT
        ).resolve()

    def repository_dir(self, repository_id: str) -> Path:
        return self.tests_root / "repositories" / repository_id

    def tests_dir(self, repository_id: str) -> Path:
        return self.repository_dir(repository_id) / "tests"

    def results_dir(self, repository_id: str) -> Path:
        return self.repository_dir(repository_id) / "results"

    def config_file(self, repository_id: str) -> Path:
        return self.repository_dir(repository_id) / "config" / "env.js"

    def suite_script(self, repository_id: str) -> Path:
        return self.repository_dir(repository_id) / Environment.RUNNER.SUITE_SCRIPT

    def test_script(self, repository_id: str, test_name: str) -> Path:
        return (
            self.tests_dir(repository_id)
            / f"{test_name}{Environment.RUNNER.TEST_FILE_SUFFIX}"
        )

    def test_exists(self, repository_id: str, test_name: str) -> bool:
        return self.test_script(repository_id, test_name).is_file()

    def suite_exists(self, repository_id: str) -> bool:
        return self.suite_script(repository_id).is_file()

    def list_tests(self, repository_id: str) -> list[str]:
        """Names of all test scripts of a repository, sorted."""
        tests_dir = self.tests_dir(repository_id)
        if not tests_dir.is_dir():
            return []
        suffix = Environment.RUNNER.TEST_FILE_SUFFIX
        return sorted(
            path.name[: -len(suffix)] if suffix else path.name
            for path in tests_dir.iterdir()
            if path.is_file() and path.name.endswith(suffix)
        )

    def result_file(
        self, repository_id: str, test_name: str, timestamp: str | None = None
    ) -> Path:
        timestamp = timestamp or generate_timestamp()
        return self.results_dir(repository_id) / f"{timestamp}_{test_name}.json"

    def ensure_results_dir(self, repository_id: str) -> Path:
        results_dir = self.results_dir(repository_id)
        if not results_dir.exists():
            logger.debug(f"Creating results directory {results_dir}")
            results_dir.mkdir(parents=True, exist_ok=True)
        return results_dir
