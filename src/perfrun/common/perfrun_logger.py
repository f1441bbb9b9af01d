# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Thin wrapper around :mod:`logging` adding a TRACE level and cheap level guards."""

import logging

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

__all__ = ["TRACE", "PerfRunLogger"]


class PerfRunLogger:
    """Logger facade used by perfrun classes.

    Messages should be guarded with ``is_trace_enabled`` / ``is_debug_enabled``
    when building them is expensive (e.g. per output line).
    """

    def __init__(self, logger_name: str) -> None:
        self.logger_name = logger_name
        self._logger = logging.getLogger(logger_name)

    @property
    def is_trace_enabled(self) -> bool:
        return self._logger.isEnabledFor(TRACE)

    @property
    def is_debug_enabled(self) -> bool:
        return self._logger.isEnabledFor(logging.DEBUG)

    def trace(self, msg: str, *args, stacklevel: int = 2, **kwargs) -> None:
        if self._logger.isEnabledFor(TRACE):
            self._logger.log(TRACE, msg, *args, stacklevel=stacklevel, **kwargs)

    def debug(self, msg: str, *args, stacklevel: int = 2, **kwargs) -> None:
        self._logger.debug(msg, *args, stacklevel=stacklevel, **kwargs)

    def info(self, msg: str, *args, stacklevel: int = 2, **kwargs) -> None:
        self._logger.info(msg, *args, stacklevel=stacklevel, **kwargs)

    def warning(self, msg: str, *args, stacklevel: int = 2, **kwargs) -> None:
        self._logger.warning(msg, *args, stacklevel=stacklevel, **kwargs)

    def error(self, msg: str, *args, stacklevel: int = 2, **kwargs) -> None:
        self._logger.error(msg, *args, stacklevel=stacklevel, **kwargs)

    def exception(self, msg: str, *args, stacklevel: int = 2, **kwargs) -> None:
        self._logger.exception(msg, *args, stacklevel=stacklevel, **kwargs)
