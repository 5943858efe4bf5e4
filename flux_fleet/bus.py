"""Asynchronous delivery of background results to a consumer.

The engines never call into the consumer. They publish messages onto bounded
channels and a subscriber drains them at its own pace with `async for`. A full
channel blocks the publishing worker until the consumer catches up, the
worker is cancelled, or the channel is closed.
"""

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Any, Generic, TypeVar

from .events import Event
from .resource import Resource, ResourceKind

__all__ = [
    "ResourceUpdate",
    "EventUpdate",
    "ErrorUpdate",
    "UpdateChannel",
    "UpdateBus",
]

_LOGGER = logging.getLogger(__name__)

CHANNEL_CAPACITY = 100

T = TypeVar("T")

_CLOSED = object()


@dataclass(frozen=True)
class ResourceUpdate:
    """Full replacement snapshot of one kind in one cluster."""

    cluster: str
    kind: ResourceKind
    resources: list[Resource] = field(default_factory=list)


@dataclass(frozen=True)
class EventUpdate:
    """Recent events about flux objects in one cluster."""

    cluster: str
    events: list[Event] = field(default_factory=list)


@dataclass(frozen=True)
class ErrorUpdate:
    """A failure that happened in the background for one cluster."""

    cluster: str
    error: Exception

    def __str__(self) -> str:
        return f"{self.cluster}: {self.error}"


class UpdateChannel(Generic[T]):
    """A bounded, closable, single consumer channel."""

    def __init__(self, name: str, capacity: int = CHANNEL_CAPACITY) -> None:
        """Initialize UpdateChannel."""
        self._name = name
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self._closed_event = asyncio.Event()

    @property
    def closed(self) -> bool:
        """Return True once the channel stopped accepting messages."""
        return self._closed

    def qsize(self) -> int:
        """Number of messages waiting to be received."""
        return self._queue.qsize()

    async def send(self, message: T) -> bool:
        """Publish a message, waiting while the channel is full.

        Returns False, dropping the message, when the channel is or becomes
        closed before there is room for it.
        """
        if self._closed:
            return False
        if not self._queue.full():
            self._queue.put_nowait(message)
            return True
        put = asyncio.ensure_future(self._queue.put(message))
        closed = asyncio.ensure_future(self._closed_event.wait())
        try:
            await asyncio.wait([put, closed], return_when=asyncio.FIRST_COMPLETED)
        finally:
            closed.cancel()
            if not put.done():
                put.cancel()
        if put.done() and not put.cancelled():
            return True
        _LOGGER.debug("Dropped message on closed %s channel", self._name)
        return False

    async def receive(self) -> T:
        """Wait for the next message.

        Raises `StopAsyncIteration` once the channel is closed and drained.
        """
        while True:
            if self._closed and self._queue.empty():
                raise StopAsyncIteration
            message = await self._queue.get()
            if message is _CLOSED:
                if self._queue.empty():
                    raise StopAsyncIteration
                continue
            return message

    def close(self) -> None:
        """Stop accepting messages and wake up a waiting receiver.

        Messages already queued are still delivered.
        """
        if self._closed:
            return
        self._closed = True
        self._closed_event.set()
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # A full queue means the receiver is not blocked on get
            pass

    def __aiter__(self) -> "UpdateChannel[T]":
        return self

    async def __anext__(self) -> T:
        return await self.receive()


class UpdateBus:
    """The three channels connecting the engines to a consumer."""

    def __init__(self, capacity: int = CHANNEL_CAPACITY) -> None:
        """Initialize UpdateBus."""
        self.resource_updates: UpdateChannel[ResourceUpdate] = UpdateChannel(
            "resource", capacity
        )
        self.event_updates: UpdateChannel[EventUpdate] = UpdateChannel(
            "event", capacity
        )
        self.error_updates: UpdateChannel[ErrorUpdate] = UpdateChannel(
            "error", capacity
        )

    @property
    def closed(self) -> bool:
        """Return True once the bus was closed."""
        return self.resource_updates.closed

    async def publish_resources(self, update: ResourceUpdate) -> bool:
        """Publish a resource snapshot."""
        return await self.resource_updates.send(update)

    async def publish_events(self, update: EventUpdate) -> bool:
        """Publish an event batch."""
        return await self.event_updates.send(update)

    async def publish_error(self, cluster: str, error: Exception) -> bool:
        """Publish a background failure."""
        _LOGGER.warning("Error in cluster %s: %s", cluster, error)
        return await self.error_updates.send(ErrorUpdate(cluster=cluster, error=error))

    def close(self) -> None:
        """Close every channel."""
        self.resource_updates.close()
        self.event_updates.close()
        self.error_updates.close()
