# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Notifier implementations: console, JSON lines file, fan-out."""

import logging
from pathlib import Path
from typing import IO

import orjson
from rich.console import Console
from rich.text import Text

from perfrun.common.enums import OutputChannel
from perfrun.orchestrator.models import (
    OutputEvent,
    ResultsAvailableEvent,
    RunOutcome,
    StoppedOutcome,
)
from perfrun.orchestrator.notifications import NotificationPort

logger = logging.getLogger(__name__)

__all__ = ["CompositeNotifier", "ConsoleNotifier", "JsonLinesNotifier"]


class ConsoleNotifier:
    """Prints run output and outcomes to a rich console.

    The last outcome of every run is kept in :attr:`outcomes` so that callers
    can derive an exit status.
    """

    def __init__(self, console: Console | None = None, show_run_id: bool = False) -> None:
        self.console = console or Console()
        self.show_run_id = show_run_id
        self.outcomes: dict[str, RunOutcome] = {}

    def _prefix(self, run_id: str) -> Text:
        return Text(f"[{run_id}] ", style="dim") if self.show_run_id else Text()

    async def notify_output(self, run_id: str, event: OutputEvent) -> None:
        style = "red" if event.channel == OutputChannel.ERROR else None
        self.console.print(self._prefix(run_id) + Text(event.text, style=style))

    async def notify_completion(self, run_id: str, outcome: RunOutcome) -> None:
        self.outcomes[run_id] = outcome
        if outcome.success:
            message = Text("Test completed successfully", style="bold green")
        else:
            message = Text(
                f"Test failed with exit code {outcome.exit_code}", style="bold red"
            )
            if outcome.cause:
                message.append(f": {outcome.cause}")
        self.console.print(self._prefix(run_id) + message)

    async def notify_stopped(self, run_id: str) -> None:
        self.outcomes[run_id] = StoppedOutcome()
        self.console.print(
            self._prefix(run_id) + Text("Test stopped by user", style="bold yellow")
        )

    async def notify_results_available(self, event: ResultsAvailableEvent) -> None:
        message = Text(f"{event.message}: {event.test_name}", style="cyan")
        if event.result_file is not None:
            message.append(f" ({event.result_file})", style="dim")
        self.console.print(self._prefix(event.run_id) + message)


class JsonLinesNotifier:
    """Appends every notification to a file as one JSON document per line."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._file: IO[bytes] | None = None

    def _write(self, record: dict) -> None:
        if self._file is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = self.path.open("ab")
        self._file.write(orjson.dumps(record) + b"\n")
        self._file.flush()

    async def notify_output(self, run_id: str, event: OutputEvent) -> None:
        self._write({"type": "output", **event.model_dump(mode="json")})

    async def notify_completion(self, run_id: str, outcome: RunOutcome) -> None:
        self._write(
            {"type": "completion", "run_id": run_id, **outcome.model_dump(mode="json")}
        )

    async def notify_stopped(self, run_id: str) -> None:
        self._write({"type": "stopped", "run_id": run_id})

    async def notify_results_available(self, event: ResultsAvailableEvent) -> None:
        self._write({"type": "results_available", **event.model_dump(mode="json")})

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


class CompositeNotifier:
    """Forwards every notification to each notifier in turn.

    A notifier that raises is logged and does not keep the others from being
    called.
    """

    def __init__(self, *notifiers: NotificationPort) -> None:
        self.notifiers = list(notifiers)

    async def _fan_out(self, method: str, *args) -> None:
        for notifier in self.notifiers:
            try:
                await getattr(notifier, method)(*args)
            except Exception:
                logger.exception(
                    f"{type(notifier).__name__}.{method} failed, continuing with the next notifier"
                )

    async def notify_output(self, run_id: str, event: OutputEvent) -> None:
        await self._fan_out("notify_output", run_id, event)

    async def notify_completion(self, run_id: str, outcome: RunOutcome) -> None:
        await self._fan_out("notify_completion", run_id, outcome)

    async def notify_stopped(self, run_id: str) -> None:
        await self._fan_out("notify_stopped", run_id)

    async def notify_results_available(self, event: ResultsAvailableEvent) -> None:
        await self._fan_out("notify_results_available", event)
