"""
event_queue.py - Ordered, unbounded queue bridging a flow and its event stream.

One producer (the flow run) pushes events; one consumer at a time (the SSE
endpoint) drains them with ``async for``. The queue never blocks the
producer: a slow or vanished client only makes the buffer grow, flow
execution is never stalled by it.

Usage:
    queue = EventQueue()
    queue.push({"type": "started"})
    queue.close()

    async for event in queue:
        ...

Iteration semantics:
    - buffered events are yielded in push order and removed from the buffer
    - when the buffer is empty and the queue is open, the consumer suspends
      until the next push or close
    - when the queue is closed and drained, iteration ends

Only one consumer may iterate at a time. A second concurrent iteration
raises QueueBusyError on its first step. The consumer slot is released when
the iterator is exhausted or closed, after which a new consumer picks up the
events that were not yet read.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import AsyncIterator, Deque, Generic, TypeVar

EventT = TypeVar("EventT")


class QueueClosedError(RuntimeError):
    """Raised when pushing to a closed queue."""


class QueueBusyError(RuntimeError):
    """Raised when a second consumer tries to drain a queue concurrently."""


class EventQueue(Generic[EventT]):
    """Unbounded single-producer, single-consumer async event queue."""

    def __init__(self) -> None:
        self._buffer: Deque[EventT] = deque()
        self._closed = False
        self._consumer_active = False
        self._wakeup = asyncio.Event()

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def has_consumer(self) -> bool:
        """True while an iterator is draining the queue."""
        return self._consumer_active

    def push(self, event: EventT) -> None:
        """Append an event to the tail of the queue.

        Raises:
            QueueClosedError: If the queue was already closed.
        """
        if self._closed:
            raise QueueClosedError("Cannot push to a closed event queue")
        self._buffer.append(event)
        self._wakeup.set()

    def close(self) -> None:
        """Mark the queue as finished. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._wakeup.set()

    def __aiter__(self) -> AsyncIterator[EventT]:
        return self.consume()

    async def consume(self) -> AsyncIterator[EventT]:
        """Drain the queue. See the module docstring for the semantics.

        Raises:
            QueueBusyError: On the first step, if another consumer is active.
        """
        if self._consumer_active:
            raise QueueBusyError("Event queue already has an active consumer")
        self._consumer_active = True
        try:
            while True:
                if self._buffer:
                    yield self._buffer.popleft()
                    continue
                if self._closed:
                    return
                self._wakeup.clear()
                await self._wakeup.wait()
        finally:
            self._consumer_active = False
