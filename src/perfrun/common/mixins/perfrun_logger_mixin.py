# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

from perfrun.common.perfrun_logger import PerfRunLogger


class PerfRunLoggerMixin:
    """Gives a class ``self.debug(...)``-style logging through a :class:`PerfRunLogger`.

    The logger name defaults to the concrete class's module.
    """

    def __init__(self, logger_name: str | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.logger = PerfRunLogger(logger_name or self.__class__.__module__)

    @property
    def is_trace_enabled(self) -> bool:
        return self.logger.is_trace_enabled

    @property
    def is_debug_enabled(self) -> bool:
        return self.logger.is_debug_enabled

    # stacklevel=3 attributes records to the caller of these methods.

    def trace(self, msg: str, *args, **kwargs) -> None:
        self.logger.trace(msg, *args, stacklevel=3, **kwargs)

    def debug(self, msg: str, *args, **kwargs) -> None:
        self.logger.debug(msg, *args, stacklevel=3, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self.logger.info(msg, *args, stacklevel=3, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self.logger.warning(msg, *args, stacklevel=3, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self.logger.error(msg, *args, stacklevel=3, **kwargs)

    def exception(self, msg: str, *args, **kwargs) -> None:
        self.logger.exception(msg, *args, stacklevel=3, **kwargs)
