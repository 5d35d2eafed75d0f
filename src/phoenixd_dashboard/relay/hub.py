"""
Fan-out of feed events to browser subscribers.

[BroadcastHub][phoenixd_dashboard.relay.hub.BroadcastHub] keeps the set of
open downstream connections. For every event it serialises once and puts the
identical string on each subscriber's bounded outbox; a per-subscriber writer
task drains the outbox in order, each send bounded by ``send_timeout``.
``broadcast()`` itself never awaits a send, so a backed-up browser cannot
delay the relay or the other subscribers.

A subscriber that is closed, whose outbox is full, whose send fails, or whose
send times out is unregistered and never retried. There is no history: a
subscriber only sees events broadcast after it registered.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Protocol

from phoenixd_dashboard.core.exceptions import SendError
from phoenixd_dashboard.core.logger import Logger
from phoenixd_dashboard.models.event import Event


class Subscriber(Protocol):
    """One downstream connection as the hub sees it. Must be hashable."""

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, data: str) -> None: ...


class _Outbox:
    __slots__ = ("queue", "writer")

    def __init__(self, size: int) -> None:
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=size)
        self.writer: asyncio.Task[None] | None = None


class BroadcastHub:
    """Registry of subscribers plus the broadcast operation.

    Args:
        send_timeout: Upper bound for one send to one subscriber (seconds).
        outbox_size: Messages that may wait for a subscriber before it is
            considered backed up and dropped.

    Attributes:
        events_broadcast: Events passed to ``on_event``/``broadcast``.
        messages_sent: Successful individual sends.
        subscribers_dropped: Subscribers removed after a failed or backed-up send.

    Examples:
        ```python
        hub = BroadcastHub(send_timeout=5.0)
        adapter.add_listener(hub.on_event)
        hub.register(subscriber)
        ...
        await hub.close()
        ```
    """

    def __init__(self, send_timeout: float = 5.0, outbox_size: int = 16) -> None:
        if send_timeout <= 0:
            raise ValueError("send_timeout must be positive")
        if outbox_size < 1:
            raise ValueError("outbox_size must be >= 1")
        self._send_timeout = send_timeout
        self._outbox_size = outbox_size
        # dict keeps registration order
        self._subscribers: dict[Subscriber, _Outbox] = {}
        self._logger = Logger("hub")

        self.events_broadcast = 0
        self.messages_sent = 0
        self.subscribers_dropped = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def subscribers(self) -> tuple[Subscriber, ...]:
        return tuple(self._subscribers)

    def pending(self, subscriber: Subscriber) -> int:
        """Messages queued for ``subscriber`` and not yet sent."""
        outbox = self._subscribers.get(subscriber)
        return outbox.queue.qsize() if outbox is not None else 0

    def register(self, subscriber: Subscriber) -> None:
        """Add a subscriber. Registering twice is a no-op."""
        if subscriber in self._subscribers:
            return
        self._subscribers[subscriber] = _Outbox(self._outbox_size)
        self._logger.info("subscriber_registered", subscribers=len(self._subscribers))

    def unregister(self, subscriber: Subscriber) -> bool:
        """Remove a subscriber and discard its outbox.

        Returns:
            ``False`` if it was not registered.
        """
        outbox = self._subscribers.pop(subscriber, None)
        if outbox is None:
            return False
        self._stop_writer(outbox)
        self._logger.info("subscriber_unregistered", subscribers=len(self._subscribers))
        return True

    async def close(self) -> None:
        """Unregister everyone and wait for their writer tasks to end."""
        outboxes = list(self._subscribers.values())
        self._subscribers.clear()
        writers = [o.writer for o in outboxes if o.writer is not None]
        for writer in writers:
            writer.cancel()
        for writer in writers:
            with contextlib.suppress(asyncio.CancelledError):
                await writer

    async def on_event(self, event: Event) -> int:
        """Upstream listener entry point: broadcast ``event.to_json()``."""
        return await self.broadcast(event.to_json())

    async def broadcast(self, payload: str) -> int:
        """Queue ``payload`` for every registered subscriber.

        Returns without waiting for any send. Closed and backed-up
        subscribers are dropped immediately.

        Returns:
            Number of subscribers the payload was queued for.
        """
        self.events_broadcast += 1
        queued = 0
        for subscriber, outbox in list(self._subscribers.items()):
            if not subscriber.is_open:
                self._drop(subscriber, "subscriber closed")
                continue
            try:
                outbox.queue.put_nowait(payload)
            except asyncio.QueueFull:
                self._drop(subscriber, f"outbox full ({self._outbox_size} pending)")
                continue
            if outbox.writer is None:
                outbox.writer = asyncio.create_task(
                    self._drain(subscriber, outbox.queue), name="hub-writer"
                )
            queued += 1
        return queued

    async def _drain(self, subscriber: Subscriber, queue: asyncio.Queue[str]) -> None:
        while True:
            payload = await queue.get()
            try:
                await self._deliver(subscriber, payload)
            except SendError as e:
                self._drop(subscriber, str(e))
                return
            self.messages_sent += 1

    async def _deliver(self, subscriber: Subscriber, payload: str) -> None:
        """Send to one subscriber, raising SendError for any failure."""
        if not subscriber.is_open:
            raise SendError("subscriber closed")
        try:
            await asyncio.wait_for(subscriber.send_text(payload), timeout=self._send_timeout)
        except TimeoutError as e:
            raise SendError(f"send timed out after {self._send_timeout}s") from e
        except asyncio.CancelledError:
            raise
        except Exception as e:  # Any transport fault isolates this subscriber only
            raise SendError(f"send failed: {e}") from e

    def _drop(self, subscriber: Subscriber, reason: str) -> None:
        outbox = self._subscribers.pop(subscriber, None)
        if outbox is None:
            return
        self._stop_writer(outbox)
        self.subscribers_dropped += 1
        self._logger.warning(
            "subscriber_dropped", reason=reason, subscribers=len(self._subscribers)
        )

    @staticmethod
    def _stop_writer(outbox: _Outbox) -> None:
        writer = outbox.writer
        if writer is not None and writer is not asyncio.current_task() and not writer.done():
            writer.cancel()
