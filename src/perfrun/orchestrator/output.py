# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Turns raw process output into clean, rate-limited output events."""

import re
import threading
import time
from dataclasses import dataclass

from perfrun.common.enums import OutputChannel
from perfrun.common.environment import Environment
from perfrun.common.mixins import PerfRunLoggerMixin
from perfrun.orchestrator.models import OutputEvent

__all__ = ["OutputPipeline", "clean_lines", "strip_ansi"]

# CSI sequences: colors, cursor movement, line erasure.
_ANSI_CSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")


def strip_ansi(text: str) -> str:
    return _ANSI_CSI_RE.sub("", text)


def clean_lines(chunk: str) -> list[str]:
    """Split a chunk into trimmed, ANSI-free, non-empty lines."""
    lines = []
    for line in chunk.splitlines():
        cleaned = strip_ansi(line).strip()
        if cleaned:
            lines.append(cleaned)
    return lines


@dataclass
class _ErrorThrottle:
    count: int = 0
    last_emit: float | None = None


class OutputPipeline(PerfRunLoggerMixin):
    """Cleans output chunks and rate-limits the error channel per run.

    Log lines are always forwarded. An error line is forwarded only while fewer
    than ``ERROR_LINE_CAP`` error lines have been seen for the run and at least
    ``ERROR_MIN_INTERVAL`` seconds have passed since the last forwarded one.
    Suppressed lines still count towards the cap.
    """

    def __init__(
        self,
        error_line_cap: int | None = None,
        error_min_interval: float | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.error_line_cap = (
            error_line_cap
            if error_line_cap is not None
            else Environment.OUTPUT.ERROR_LINE_CAP
        )
        self.error_min_interval = (
            error_min_interval
            if error_min_interval is not None
            else Environment.OUTPUT.ERROR_MIN_INTERVAL
        )
        self._throttles: dict[str, _ErrorThrottle] = {}
        self._lock = threading.Lock()

    def ingest(
        self, run_id: str, channel: OutputChannel, chunk: str
    ) -> list[OutputEvent]:
        events = []
        for line in clean_lines(chunk):
            if channel == OutputChannel.ERROR:
                if not self._admit_error(run_id):
                    continue
                events.append(OutputEvent.error(run_id, line))
            else:
                events.append(OutputEvent.log(run_id, line))
        return events

    def _admit_error(self, run_id: str) -> bool:
        now = time.monotonic()
        with self._lock:
            throttle = self._throttles.setdefault(run_id, _ErrorThrottle())
            admitted = throttle.count < self.error_line_cap and (
                throttle.last_emit is None
                or now - throttle.last_emit >= self.error_min_interval
            )
            throttle.count += 1
            if admitted:
                throttle.last_emit = now
            count = throttle.count

        if not admitted and self.is_trace_enabled:
            self.trace(f"Suppressed error line #{count} of run {run_id}")
        return admitted

    def discard(self, run_id: str) -> None:
        """Forget the throttle state of a run. Safe to call repeatedly."""
        with self._lock:
            self._throttles.pop(run_id, None)

    def error_count(self, run_id: str) -> int:
        with self._lock:
            throttle = self._throttles.get(run_id)
            return throttle.count if throttle else 0

    def has_state(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._throttles
