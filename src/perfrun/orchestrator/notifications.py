# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Fire-and-forget delivery of run notifications.

The coordinator never awaits a notifier. Each run gets its own ordered channel
(an :class:`asyncio.Queue` drained by a dedicated task), so a slow notifier
delays only the notifications of that run and a failing one is logged and
skipped. Results-available announcements go through one shared channel.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Protocol, runtime_checkable

from perfrun.common.environment import Environment
from perfrun.common.mixins import PerfRunLoggerMixin
from perfrun.orchestrator.models import (
    OutputEvent,
    ResultsAvailableEvent,
    RunOutcome,
)

__all__ = ["NotificationDispatcher", "NotificationPort"]

_BROADCAST = "__results__"


@runtime_checkable
class NotificationPort(Protocol):
    """Receiver of run notifications. All methods may be slow or raise."""

    async def notify_output(self, run_id: str, event: OutputEvent) -> None: ...

    async def notify_completion(self, run_id: str, outcome: RunOutcome) -> None: ...

    async def notify_stopped(self, run_id: str) -> None: ...

    async def notify_results_available(self, event: ResultsAvailableEvent) -> None: ...


class _Notification(NamedTuple):
    method: str
    args: tuple[Any, ...]
    is_output: bool = False


_CLOSE = _Notification(method="", args=())


@dataclass
class _Channel:
    name: str
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    task: asyncio.Task | None = None
    pending_output: int = 0
    dropped_output: int = 0


class NotificationDispatcher(PerfRunLoggerMixin):
    """Queues notifications per run and delivers them in order to a notifier.

    Output events beyond ``max_pending`` queued for a run are dropped. Completion
    and stop notifications are never dropped and are delivered after every
    output event that was queued before them.

    Must be used from within a running event loop.
    """

    def __init__(
        self, notifier: NotificationPort, max_pending: int | None = None, **kwargs
    ) -> None:
        super().__init__(**kwargs)
        self.notifier = notifier
        self.max_pending = (
            max_pending
            if max_pending is not None
            else Environment.OUTPUT.MAX_PENDING_NOTIFICATIONS
        )
        self._channels: dict[str, _Channel] = {}
        self._closing: set[asyncio.Task] = set()

    def notify_output(self, run_id: str, event: OutputEvent) -> bool:
        """Queue an output event. False if it was dropped."""
        channel = self._channel(run_id)
        if channel.pending_output >= self.max_pending:
            channel.dropped_output += 1
            self.debug(
                f"Dropping output of run {run_id}: {channel.pending_output} events pending "
                f"({channel.dropped_output} dropped so far)"
            )
            return False
        channel.pending_output += 1
        channel.queue.put_nowait(
            _Notification("notify_output", (run_id, event), is_output=True)
        )
        return True

    def notify_completion(self, run_id: str, outcome: RunOutcome) -> None:
        self._channel(run_id).queue.put_nowait(
            _Notification("notify_completion", (run_id, outcome))
        )

    def notify_stopped(self, run_id: str) -> None:
        self._channel(run_id).queue.put_nowait(
            _Notification("notify_stopped", (run_id,))
        )

    def notify_results_available(self, event: ResultsAvailableEvent) -> None:
        self._channel(_BROADCAST).queue.put_nowait(
            _Notification("notify_results_available", (event,))
        )

    def close(self, run_id: str) -> None:
        """Deliver what is queued for the run, then retire its channel."""
        channel = self._channels.pop(run_id, None)
        if channel is None:
            return
        channel.queue.put_nowait(_CLOSE)
        if channel.task is not None:
            self._closing.add(channel.task)
            channel.task.add_done_callback(self._closing.discard)

    def has_channel(self, run_id: str) -> bool:
        return run_id in self._channels

    async def flush(self) -> None:
        """Wait until everything queued so far has been delivered."""
        await asyncio.gather(
            *(channel.queue.join() for channel in list(self._channels.values())),
            *list(self._closing),
        )

    async def aclose(self) -> None:
        """Deliver everything queued, then stop all drain tasks."""
        for name in list(self._channels):
            self.close(name)
        if self._closing:
            await asyncio.gather(*list(self._closing))

    def _channel(self, name: str) -> _Channel:
        channel = self._channels.get(name)
        if channel is None:
            channel = _Channel(name=name)
            channel.task = asyncio.create_task(
                self._drain(channel), name=f"notifications-{name}"
            )
            self._channels[name] = channel
        return channel

    async def _drain(self, channel: _Channel) -> None:
        while True:
            notification = await channel.queue.get()
            try:
                if notification is _CLOSE:
                    return
                if notification.is_output:
                    channel.pending_output -= 1
                await self._deliver(channel, notification)
            finally:
                channel.queue.task_done()

    async def _deliver(self, channel: _Channel, notification: _Notification) -> None:
        try:
            await getattr(self.notifier, notification.method)(*notification.args)
        except Exception:
            self.exception(
                f"Notifier failed on {notification.method} for {channel.name}"
            )
