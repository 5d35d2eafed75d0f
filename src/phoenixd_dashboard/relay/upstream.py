"""
Upstream adapter for the phoenixd notification feed.

[UpstreamAdapter][phoenixd_dashboard.relay.upstream.UpstreamAdapter] owns the
single WebSocket to ``<phoenixd>/websocket``. Each text frame is decoded with
[parse_event()][phoenixd_dashboard.models.event.parse_event] and handed, in
arrival order, to every registered listener before the next frame is read.

Malformed frames are logged and dropped; a listener that raises is logged
and skipped. Neither ends the stream. Transport failures surface as
[ConnectivityError][phoenixd_dashboard.core.exceptions.ConnectivityError]
for the [ReconnectSupervisor][phoenixd_dashboard.relay.supervisor.ReconnectSupervisor].
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from phoenixd_dashboard.core.exceptions import ConnectivityError, ParseError
from phoenixd_dashboard.core.logger import Logger
from phoenixd_dashboard.models.constants import ConnectionState
from phoenixd_dashboard.models.event import Event, parse_event
from phoenixd_dashboard.phoenixd.configs import PhoenixdConfig
from phoenixd_dashboard.utils.transport import WebSocketSession, basic_auth, websocket_url


_LOG_FRAME_LIMIT = 200

EventListener = Callable[[Event], Awaitable[Any] | Any]
SessionOpener = Callable[..., Awaitable[WebSocketSession]]


class UpstreamAdapter:
    """The dashboard's one connection to the phoenixd event feed.

    Implements [FeedConnection][phoenixd_dashboard.relay.supervisor.FeedConnection].

    Attributes:
        frames_received: Text frames read since creation.
        frames_discarded: Frames dropped because they failed to parse.
        events_emitted: Events delivered to the listener chain.
        listener_errors: Listener invocations that raised.
    """

    def __init__(
        self,
        config: PhoenixdConfig | None = None,
        *,
        open_session: SessionOpener = WebSocketSession.open,
    ) -> None:
        self._config = config or PhoenixdConfig()
        self._url = websocket_url(self._config.url)
        self._open_session = open_session
        self._session: WebSocketSession | None = None
        self._listeners: list[EventListener] = []
        self._state = ConnectionState.DISCONNECTED
        self._logger = Logger("upstream")

        self.frames_received = 0
        self.frames_discarded = 0
        self.events_emitted = 0
        self.listener_errors = 0

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        return self._state

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_listener(self, listener: EventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -------------------------------------------------------------------------
    # FeedConnection
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the feed socket with Basic ``:<password>`` credentials.

        Raises:
            ConnectivityError: If the socket cannot be opened or the adapter
                was shut down.
        """
        if self._state is ConnectionState.SHUT_DOWN:
            raise ConnectivityError("upstream adapter is shut down")
        if self._session is not None and not self._session.closed:
            return

        self._state = ConnectionState.CONNECTING
        self._logger.info("upstream_connecting", url=self._url)
        try:
            self._session = await self._open_session(
                self._url,
                auth=basic_auth(self._config.password.get_secret_value()),
                connect_timeout=self._config.connect_timeout,
                heartbeat=self._config.heartbeat,
            )
        except ConnectivityError as e:
            self._state = ConnectionState.DISCONNECTED
            self._logger.warning("upstream_connect_failed", url=self._url, error=str(e))
            raise
        self._state = ConnectionState.CONNECTED
        self._logger.info("upstream_connected", url=self._url)

    async def receive(self) -> None:
        """Read frames until the feed closes.

        Raises:
            ConnectivityError: If not connected or the socket errors.
        """
        session = self._session
        if session is None:
            raise ConnectivityError("upstream adapter is not connected")
        try:
            async for frame in session.iter_text():
                await self.handle_frame(frame)
        finally:
            if self._state is not ConnectionState.SHUT_DOWN:
                self._state = ConnectionState.DISCONNECTED
        self._logger.info("upstream_closed", url=self._url)

    async def close(self) -> None:
        """Release the socket. Safe to call repeatedly."""
        session, self._session = self._session, None
        if session is not None:
            await session.close()
            self._logger.info("upstream_socket_released")
        if self._state is not ConnectionState.SHUT_DOWN:
            self._state = ConnectionState.DISCONNECTED

    async def shutdown(self) -> None:
        """Close and refuse any further ``connect()``."""
        self._state = ConnectionState.SHUT_DOWN
        await self.close()

    # -------------------------------------------------------------------------
    # Frame handling
    # -------------------------------------------------------------------------

    async def handle_frame(self, frame: str | bytes) -> Event | None:
        """Classify one frame and run the listener chain.

        Returns:
            The emitted event, or ``None`` if the frame was discarded.
        """
        self.frames_received += 1
        try:
            event = parse_event(frame)
        except ParseError as e:
            self.frames_discarded += 1
            self._logger.warning(
                "frame_discarded",
                error=str(e)[:_LOG_FRAME_LIMIT],
                frame=frame[:_LOG_FRAME_LIMIT],
            )
            return None

        self._logger.debug("event_received", kind=event.kind, type=event.type)
        await self._emit(event)
        return event

    async def _emit(self, event: Event) -> None:
        self.events_emitted += 1
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:  # One failing listener must not starve the rest
                self.listener_errors += 1
                self._logger.error(
                    "listener_failed",
                    listener=getattr(listener, "__qualname__", repr(listener)),
                    kind=event.kind,
                    error=str(e),
                )
