"""
Reconnection supervisor for long-lived feed connections.

[ReconnectSupervisor][phoenixd_dashboard.relay.supervisor.ReconnectSupervisor]
drives any object shaped like
[FeedConnection][phoenixd_dashboard.relay.supervisor.FeedConnection] through
``connect -> receive -> close`` and, whenever the connection drops or fails
to open, schedules the next attempt on a cancellable timer task. It retries
indefinitely until [shutdown()][phoenixd_dashboard.relay.supervisor.ReconnectSupervisor.shutdown].

The same policy serves the upstream phoenixd feed and the downstream hub
listener.

Timing:
    Fixed delay by default (5 s). With ``exponential_backoff`` the n-th
    consecutive retry waits ``delay * 2**n`` capped at ``max_delay``.
    ``attempts`` goes back to 0 on every successful connect, so the first
    retry after a drop always waits the base delay.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from phoenixd_dashboard.core.exceptions import ConnectivityError
from phoenixd_dashboard.core.logger import Logger
from phoenixd_dashboard.models.constants import ConnectionState


MIN_RECONNECT_DELAY = 1.0

Callback = Callable[..., Awaitable[Any] | Any]
SleepFn = Callable[[float], Awaitable[Any]]


class ReconnectConfig(BaseModel):
    """Retry timing for a supervised connection."""

    delay: float = Field(
        default=5.0,
        ge=MIN_RECONNECT_DELAY,
        description="Seconds before each reconnect attempt",
    )
    exponential_backoff: bool = Field(
        default=False,
        description="Double the delay on every consecutive failure",
    )
    max_delay: float = Field(
        default=60.0,
        ge=MIN_RECONNECT_DELAY,
        description="Upper bound for the backed-off delay",
    )

    @field_validator("max_delay")
    @classmethod
    def validate_max_delay(cls, v: float, info: ValidationInfo) -> float:
        delay = info.data.get("delay", 5.0)
        if v < delay:
            raise ValueError(f"max_delay ({v}) must be >= delay ({delay})")
        return v


class FeedConnection(Protocol):
    """What the supervisor needs from a connection.

    ``connect()`` raises
    [ConnectivityError][phoenixd_dashboard.core.exceptions.ConnectivityError]
    on failure. ``receive()`` returns when the peer closes and raises
    ``ConnectivityError`` when the transport breaks. ``close()`` is idempotent.
    """

    async def connect(self) -> None: ...

    async def receive(self) -> None: ...

    async def close(self) -> None: ...


async def invoke_callback(
    callback: Callback | None,
    *args: Any,
    logger: Logger,
    name: str,
) -> None:
    """Call a sync or async user callback; log and swallow what it raises."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except asyncio.CancelledError:
        raise
    except Exception as e:  # User callbacks must never break the connection loop
        logger.error("callback_failed", callback=name, error=str(e), error_type=type(e).__name__)


class ReconnectSupervisor:
    """Keep one [FeedConnection][phoenixd_dashboard.relay.supervisor.FeedConnection]
    open, retrying on every failure until shut down.

    Args:
        connection: The connection to drive.
        config: Retry timing (defaults to a fixed 5 s delay).
        name: Label used in log lines (``upstream``, ``listener``).
        on_connect: Called after each successful connect.
        on_disconnect: Called after each drop of an established connection.
        sleep: Awaitable delay function, ``asyncio.sleep`` unless a test
            injects a manual clock.

    Examples:
        ```python
        supervisor = ReconnectSupervisor(adapter, ReconnectConfig(), name="upstream")
        supervisor.start()
        ...
        await supervisor.shutdown()
        ```
    """

    def __init__(
        self,
        connection: FeedConnection,
        config: ReconnectConfig | None = None,
        *,
        name: str = "feed",
        on_connect: Callback | None = None,
        on_disconnect: Callback | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._connection = connection
        self._config = config or ReconnectConfig()
        self._name = name
        self._on_connect = on_connect
        self._on_disconnect = on_disconnect
        self._sleep = sleep
        self._logger = Logger(f"supervisor.{name}")

        self._state = ConnectionState.DISCONNECTED
        self._attempts = 0
        self._connects = 0
        self._session_task: asyncio.Task[None] | None = None
        self._retry_task: asyncio.Task[None] | None = None

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def is_shut_down(self) -> bool:
        return self._state is ConnectionState.SHUT_DOWN

    @property
    def attempts(self) -> int:
        """Consecutive reconnect attempts since the last successful connect."""
        return self._attempts

    @property
    def connects(self) -> int:
        """Successful connects since start."""
        return self._connects

    @property
    def next_delay(self) -> float:
        """Delay the next scheduled reconnect will wait."""
        cfg = self._config
        if not cfg.exponential_backoff:
            return cfg.delay
        return float(min(cfg.delay * (2**self._attempts), cfg.max_delay))

    @property
    def retry_pending(self) -> bool:
        return self._retry_task is not None and not self._retry_task.done()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Begin the first connect attempt. Must be called inside a running loop.

        Raises:
            RuntimeError: If the supervisor was already shut down.
        """
        if self._state is ConnectionState.SHUT_DOWN:
            raise RuntimeError(f"{self._name} supervisor is shut down")
        if self._session_task is not None and not self._session_task.done():
            return
        self._session_task = asyncio.create_task(self._run_session(), name=f"{self._name}-session")

    async def shutdown(self) -> None:
        """Stop permanently: cancel the pending retry and the active session,
        then close the connection. Idempotent.
        """
        if self._state is ConnectionState.SHUT_DOWN:
            return
        self._state = ConnectionState.SHUT_DOWN

        current = asyncio.current_task()
        tasks = [
            task
            for task in (self._retry_task, self._session_task)
            if task is not None and task is not current and not task.done()
        ]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._retry_task = None
        self._session_task = None

        await self._connection.close()
        self._logger.info("supervisor_shut_down", connects=self._connects)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _run_session(self) -> None:
        self._state = ConnectionState.CONNECTING
        try:
            await self._connection.connect()
        except Exception as e:  # Any connect failure is retried
            if self._state is ConnectionState.SHUT_DOWN:
                return
            self._state = ConnectionState.DISCONNECTED
            self._log_failure("connect_failed", e, attempts=self._attempts)
            self._schedule_reconnect()
            return

        if self._state is ConnectionState.SHUT_DOWN:
            await self._connection.close()
            return

        self._state = ConnectionState.CONNECTED
        self._attempts = 0
        self._connects += 1
        self._logger.info("connected", connects=self._connects)
        await invoke_callback(self._on_connect, logger=self._logger, name="on_connect")

        reason = "closed"
        try:
            await self._connection.receive()
        except Exception as e:  # Any receive failure is a disconnect
            reason = str(e) or type(e).__name__
            if not isinstance(e, ConnectivityError | OSError):
                self._log_failure("session_failed", e)

        if self._state is ConnectionState.SHUT_DOWN:
            return
        self._state = ConnectionState.DISCONNECTED
        await self._connection.close()
        self._logger.warning("disconnected", reason=reason)
        await invoke_callback(self._on_disconnect, logger=self._logger, name="on_disconnect")
        self._schedule_reconnect()

    def _log_failure(self, event: str, error: Exception, **kwargs: Any) -> None:
        if isinstance(error, ConnectivityError | OSError):
            self._logger.warning(event, error=str(error), **kwargs)
        else:
            self._logger.error(
                event, error=str(error), error_type=type(error).__name__, **kwargs
            )

    def _schedule_reconnect(self) -> None:
        # No await between this check and create_task
        if self._state is ConnectionState.SHUT_DOWN:
            return
        delay = self.next_delay
        self._attempts += 1
        self._logger.info("reconnect_scheduled", attempt=self._attempts, delay_s=delay)
        self._retry_task = asyncio.create_task(
            self._reconnect_after(delay), name=f"{self._name}-retry"
        )

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        if self._state is ConnectionState.SHUT_DOWN:
            return
        self._session_task = asyncio.create_task(self._run_session(), name=f"{self._name}-session")
