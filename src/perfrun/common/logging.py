# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Console logging setup."""

import logging

from rich.console import Console
from rich.logging import RichHandler

from perfrun.common.constants import SECRET_PREVIEW_CHARS
from perfrun.common.environment import Environment
from perfrun.common.perfrun_logger import TRACE

__all__ = ["redact", "resolve_log_level", "setup_rich_logging"]

_LOG_FORMAT = "%(message)s"
_DATE_FORMAT = "%H:%M:%S"


def resolve_log_level(level: str | int | None = None) -> int:
    """Translate a level name (including TRACE) into a logging level number."""
    if level is None:
        level = Environment.LOGGING.LEVEL
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name == "TRACE":
        return TRACE
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def setup_rich_logging(
    level: str | int | None = None, console: Console | None = None
) -> None:
    """Route all perfrun logging through a single rich console handler."""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if isinstance(handler, RichHandler):
            root_logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=Environment.LOGGING.RICH_TRACEBACKS,
        show_path=False,
        log_time_format=_DATE_FORMAT,
    )
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel(resolve_log_level(level))


def redact(secret: str | None) -> str:
    """Short, log-safe preview of a secret value."""
    if not secret:
        return "[empty]"
    if len(secret) <= SECRET_PREVIEW_CHARS:
        return "***"
    return f"{secret[:SECRET_PREVIEW_CHARS]}..."
