"""
Subscriber-side client of the dashboard's ``/ws`` endpoint.

[DownstreamListener][phoenixd_dashboard.relay.listener.DownstreamListener]
connects to a running dashboard, decodes every message into an
[Event][phoenixd_dashboard.models.event.Event] and hands it to the caller's
callbacks. Drops are retried with the same
[ReconnectSupervisor][phoenixd_dashboard.relay.supervisor.ReconnectSupervisor]
policy as the upstream feed; [stop()][phoenixd_dashboard.relay.listener.DownstreamListener.stop]
ends it for good.

Examples:
    ```python
    listener = DownstreamListener("ws://localhost:4001/ws")
    listener.start(on_payment=lambda p: print(p.amount_sat))
    ...
    await listener.stop()
    ```
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from phoenixd_dashboard.core.exceptions import ConnectivityError, ParseError
from phoenixd_dashboard.core.logger import Logger
from phoenixd_dashboard.models.event import Event, PaymentReceived, parse_event
from phoenixd_dashboard.utils.transport import WebSocketSession

from .supervisor import Callback, ReconnectConfig, ReconnectSupervisor, SleepFn, invoke_callback


DEFAULT_HUB_URL = "ws://localhost:4001/ws"

SessionOpener = Callable[..., Awaitable[WebSocketSession]]


class HubConnection:
    """[FeedConnection][phoenixd_dashboard.relay.supervisor.FeedConnection]
    to a dashboard hub; passes each text message to ``on_message``.
    """

    def __init__(
        self,
        url: str,
        on_message: Callable[[str], Awaitable[None]],
        *,
        connect_timeout: float = 10.0,
        open_session: SessionOpener = WebSocketSession.open,
    ) -> None:
        self._url = url
        self._on_message = on_message
        self._connect_timeout = connect_timeout
        self._open_session = open_session
        self._session: WebSocketSession | None = None

    async def connect(self) -> None:
        self._session = await self._open_session(self._url, connect_timeout=self._connect_timeout)

    async def receive(self) -> None:
        session = self._session
        if session is None:
            raise ConnectivityError("hub connection is not open")
        async for message in session.iter_text():
            await self._on_message(message)

    async def close(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.close()


class DownstreamListener:
    """Receive relayed events from a dashboard with automatic reconnect.

    Args:
        url: Hub endpoint, ``ws://host:port/ws``.
        reconnect: Retry timing (fixed 5 s by default).
        connect_timeout: Per-attempt connect timeout.
        sleep: Delay function for the supervisor (tests inject a manual clock).
        open_session: Socket factory (tests inject fakes).

    Attributes:
        messages_received: Messages read from the hub.
        messages_discarded: Messages that failed to parse.
    """

    def __init__(
        self,
        url: str = DEFAULT_HUB_URL,
        reconnect: ReconnectConfig | None = None,
        *,
        connect_timeout: float = 10.0,
        sleep: SleepFn = asyncio.sleep,
        open_session: SessionOpener = WebSocketSession.open,
    ) -> None:
        self._url = url
        self._reconnect = reconnect or ReconnectConfig()
        self._connect_timeout = connect_timeout
        self._sleep = sleep
        self._open_session = open_session
        self._supervisor: ReconnectSupervisor | None = None
        self._on_event: Callback | None = None
        self._on_payment: Callback | None = None
        self._logger = Logger("listener")

        self.messages_received = 0
        self.messages_discarded = 0

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_connected(self) -> bool:
        return self._supervisor is not None and self._supervisor.is_connected

    @property
    def supervisor(self) -> ReconnectSupervisor | None:
        return self._supervisor

    def start(
        self,
        on_connect: Callback | None = None,
        on_disconnect: Callback | None = None,
        on_event: Callback | None = None,
        on_payment: Callback | None = None,
    ) -> None:
        """Connect and keep reconnecting until ``stop()``.

        ``on_event`` receives every event; ``on_payment`` only
        [PaymentReceived][phoenixd_dashboard.models.event.PaymentReceived].
        Callbacks may be plain functions or coroutines; whatever they raise
        is logged and swallowed.

        Raises:
            RuntimeError: If already started.
        """
        if self._supervisor is not None:
            raise RuntimeError("listener already started")
        self._on_event = on_event
        self._on_payment = on_payment
        connection = HubConnection(
            self._url,
            self._handle_message,
            connect_timeout=self._connect_timeout,
            open_session=self._open_session,
        )
        self._supervisor = ReconnectSupervisor(
            connection,
            self._reconnect,
            name="listener",
            on_connect=on_connect,
            on_disconnect=on_disconnect,
            sleep=self._sleep,
        )
        self._logger.info("listener_starting", url=self._url)
        self._supervisor.start()

    async def stop(self) -> None:
        """Close the connection and disable reconnection permanently."""
        if self._supervisor is not None:
            await self._supervisor.shutdown()
            self._logger.info("listener_stopped", received=self.messages_received)

    async def _handle_message(self, message: str) -> None:
        self.messages_received += 1
        try:
            event = parse_event(message)
        except ParseError as e:
            self.messages_discarded += 1
            self._logger.warning("message_discarded", error=str(e))
            return

        await invoke_callback(self._on_event, event, logger=self._logger, name="on_event")
        if isinstance(event, PaymentReceived):
            await invoke_callback(self._on_payment, event, logger=self._logger, name="on_payment")


def payment_filter(
    payment_hash: str | None,
    callback: Callable[[PaymentReceived], Any],
) -> Callable[[Event], Any]:
    """Wrap ``callback`` so it only sees payments, optionally for one hash."""

    def handler(event: Event) -> Any:
        if not isinstance(event, PaymentReceived):
            return None
        if payment_hash is not None and event.payment_hash != payment_hash:
            return None
        return callback(event)

    return handler
