"""
Event sinks for pipeline progress.

The orchestrator only ever writes events; how they reach the caller
(SSE stream, CLI log) is decided by the sink it is given.
"""

import asyncio
import logging
from typing import Protocol, runtime_checkable

from banana_weather.models.schemas import EventKind, ProgressEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class EventSink(Protocol):
    """Destination of ProgressEvents."""

    async def emit(self, event: ProgressEvent) -> None:
        ...


class EventChannel:
    """
    One-way async channel from the orchestrator to a transport adapter.

    The producer calls emit() and finally close(); the consumer iterates
    until the channel is closed and drained.

    Example:
        channel = EventChannel()
        task = asyncio.create_task(orchestrator.run(request, channel))
        task.add_done_callback(lambda _: channel.close())
        async for event in channel:
            yield format_sse(event)
    """

    _CLOSED = object()

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    async def emit(self, event: ProgressEvent) -> None:
        if self._closed:
            logger.debug(f"Dropping {event.kind.value} event on closed channel")
            return
        await self._queue.put(event)

    def close(self) -> None:
        """Mark the end of the stream (idempotent)."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "EventChannel":
        return self

    async def __anext__(self) -> ProgressEvent:
        item = await self._queue.get()
        if item is self._CLOSED:
            raise StopAsyncIteration
        return item


class LoggingEventSink:
    """Writes events to a logger (command-line runs)."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    async def emit(self, event: ProgressEvent) -> None:
        if event.kind == EventKind.ERROR:
            self.log.warning(event.data)
        elif event.kind == EventKind.RESULT:
            self.log.info("Image ready")
        elif event.kind == EventKind.VIDEO:
            self.log.info(f"Video ready: {event.data}")
        else:
            self.log.info(event.data)


def format_sse(event: ProgressEvent) -> str:
    """
    Encode an event as a named server-sent event.

    Multi-line data is split over several `data:` lines.

    Example:
        >>> format_sse(ProgressEvent.status("Finalizing video..."))
        'event: status\\ndata: Finalizing video...\\n\\n'
    """
    lines = event.data.split("\n") or [""]
    data = "".join(f"data: {line}\n" for line in lines)
    return f"event: {event.kind.value}\n{data}\n"
