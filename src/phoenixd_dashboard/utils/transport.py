"""WebSocket transport helpers built on aiohttp.

[WebSocketSession][phoenixd_dashboard.utils.transport.WebSocketSession] pairs
one ``aiohttp.ClientSession`` with the single WebSocket it opened, so both
are released together. The upstream adapter (phoenixd feed) and the
downstream listener (dashboard hub) share it.

Note:
    This module sits in the ``utils`` layer and depends only on the stdlib,
    ``aiohttp`` and [phoenixd_dashboard.core.exceptions][].
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from urllib.parse import urlsplit, urlunsplit

import aiohttp

from phoenixd_dashboard.core.exceptions import ConnectivityError


logger = logging.getLogger(__name__)

_WS_CLOSE_TIMEOUT = 5.0

_WS_SCHEMES = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


def websocket_url(base_url: str, path: str = "/websocket") -> str:
    """Derive a WebSocket URL from an HTTP base URL.

    ``http`` becomes ``ws`` and ``https`` becomes ``wss``; ``path`` is
    appended to whatever path the base already has.

    Raises:
        ValueError: If the scheme is not http(s) or ws(s), or there is no host.

    Examples:
        ```python
        websocket_url("http://phoenixd:9740")        # ws://phoenixd:9740/websocket
        websocket_url("https://node.example/api/")  # wss://node.example/api/websocket
        ```
    """
    parts = urlsplit(base_url)
    scheme = _WS_SCHEMES.get(parts.scheme.lower())
    if scheme is None:
        raise ValueError(f"unsupported URL scheme: {parts.scheme!r}")
    if not parts.netloc:
        raise ValueError(f"URL has no host: {base_url!r}")
    joined = parts.path.rstrip("/") + "/" + path.lstrip("/")
    return urlunsplit((scheme, parts.netloc, joined, "", ""))


def basic_auth(password: str) -> aiohttp.BasicAuth:
    """HTTP Basic credentials the way phoenixd expects them: empty user."""
    return aiohttp.BasicAuth("", password)


class WebSocketSession:
    """An open client WebSocket and the ``ClientSession`` that owns it.

    Create with [open()][phoenixd_dashboard.utils.transport.WebSocketSession.open].
    """

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        session: aiohttp.ClientSession,
        close_timeout: float = _WS_CLOSE_TIMEOUT,
    ) -> None:
        self._ws = ws
        self._session = session
        self._close_timeout = close_timeout

    @classmethod
    async def open(
        cls,
        url: str,
        *,
        auth: aiohttp.BasicAuth | None = None,
        connect_timeout: float = 10.0,
        heartbeat: float | None = 30.0,
    ) -> WebSocketSession:
        """Open ``url`` and return the live session.

        Raises:
            ConnectivityError: On DNS, TCP, TLS, HTTP upgrade or timeout failure.
            asyncio.CancelledError: If cancelled (the session is closed first).
        """
        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=None, sock_connect=connect_timeout)
        )
        try:
            ws = await asyncio.wait_for(
                session.ws_connect(url, auth=auth, heartbeat=heartbeat),
                timeout=connect_timeout,
            )
        except asyncio.CancelledError:
            await session.close()
            raise
        except TimeoutError:
            await session.close()
            raise ConnectivityError(f"connection timeout: {url}") from None
        except (aiohttp.ClientError, OSError) as e:
            await session.close()
            logger.debug("ws_connect_failed url=%s error=%s", url, e)
            raise ConnectivityError(f"connection to {url} failed: {e}") from e
        return cls(ws, session)

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def iter_text(self) -> AsyncIterator[str]:
        """Yield text frames until the peer closes or the socket errors.

        Binary frames are decoded as UTF-8; anything else ends iteration.
        """
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                yield msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                yield msg.data.decode("utf-8", errors="replace")
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise ConnectivityError(f"websocket error: {self._ws.exception()}")
            else:
                break

    async def send_text(self, data: str) -> None:
        await self._ws.send_str(data)

    async def close(self) -> None:
        """Close the socket and session, bounded by ``close_timeout``."""
        # Teardown of a half-dead socket can raise anything aiohttp wraps
        with contextlib.suppress(Exception):
            await asyncio.wait_for(self._ws.close(), timeout=self._close_timeout)
        with contextlib.suppress(Exception):
            await asyncio.wait_for(self._session.close(), timeout=self._close_timeout)
