"""Bounded background delivery of automation events.

Publishing never blocks the pipeline: events go into a bounded asyncio queue
drained by one worker task. A full buffer drops the event and counts it;
recorder failures are logged and counted.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from inbox_automation.protocols import EventRecorder

logger = structlog.get_logger(__name__)


@dataclass
class AutomationEvent:
    """A single event awaiting delivery."""

    event_type: str
    user_id: str
    data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class EventSinkStats:
    """Delivery counters."""

    published: int = 0
    delivered: int = 0
    dropped: int = 0
    failed: int = 0


class AutomationEventSink:
    """Buffers automation events and forwards them to a recorder.

    Example:
        sink = AutomationEventSink(recorder, max_buffer=1000)
        await sink.start()
        sink.publish("auto_deleted", user_id, {"message_id": "m1"})
        await sink.stop()
    """

    def __init__(self, recorder: EventRecorder, max_buffer: int = 1000) -> None:
        """Initialize the sink.

        Args:
            recorder: Destination for events.
            max_buffer: Maximum events held before new ones are dropped.
        """
        self.recorder = recorder
        self.stats = EventSinkStats()
        self._queue: asyncio.Queue[AutomationEvent] = asyncio.Queue(maxsize=max_buffer)
        self._worker: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Whether the delivery worker is active."""
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        """Events waiting for delivery."""
        return self._queue.qsize()

    def publish(self, event_type: str, user_id: str, data: dict[str, Any] | None = None) -> bool:
        """Buffer an event without waiting.

        Returns:
            False if the buffer was full and the event was dropped.
        """
        event = AutomationEvent(event_type=event_type, user_id=user_id, data=data or {})
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.stats.dropped += 1
            logger.warning("automation_event_dropped", event_type=event_type, user_id=user_id)
            return False
        self.stats.published += 1
        return True

    async def start(self) -> None:
        """Start the delivery worker on the running loop."""
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run(), name="automation-event-sink")

    async def stop(self, drain: bool = True) -> None:
        """Stop the worker, optionally delivering buffered events first."""
        if drain and self.is_running:
            await self._queue.join()
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.recorder.record(event.event_type, event.user_id, event.data)
                self.stats.delivered += 1
            except Exception as e:
                self.stats.failed += 1
                await logger.aerror(
                    "automation_event_delivery_failed",
                    event_type=event.event_type,
                    user_id=event.user_id,
                    error=str(e),
                )
            finally:
                self._queue.task_done()
