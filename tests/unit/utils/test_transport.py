"""
Unit tests for utils.transport module.

Tests:
- websocket_url() scheme mapping and path joining
- basic_auth() with an empty username
- WebSocketSession against an in-process aiohttp server
"""

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer, unused_port

from phoenixd_dashboard.core.exceptions import ConnectivityError
from phoenixd_dashboard.utils.transport import WebSocketSession, basic_auth, websocket_url


# ============================================================================
# URL helpers
# ============================================================================


class TestWebsocketUrl:
    """websocket_url()."""

    @pytest.mark.parametrize(
        ("base", "expected"),
        [
            ("http://phoenixd:9740", "ws://phoenixd:9740/websocket"),
            ("https://node.example", "wss://node.example/websocket"),
            ("https://node.example/api/", "wss://node.example/api/websocket"),
            ("ws://already:1", "ws://already:1/websocket"),
            ("HTTP://upper:9740", "ws://upper:9740/websocket"),
        ],
    )
    def test_mapping(self, base, expected):
        assert websocket_url(base) == expected

    def test_custom_path(self):
        assert websocket_url("http://dash:4001", "ws") == "ws://dash:4001/ws"

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError, match="unsupported URL scheme"):
            websocket_url("ftp://phoenixd")

    def test_missing_host(self):
        with pytest.raises(ValueError, match="no host"):
            websocket_url("http://")


class TestBasicAuth:
    """basic_auth()."""

    def test_empty_login(self):
        auth = basic_auth("secret")
        assert auth.login == ""
        assert auth.password == "secret"
        assert auth.encode() == aiohttp.BasicAuth("", "secret").encode()


# ============================================================================
# WebSocketSession
# ============================================================================


@pytest.fixture
async def ws_server():
    """Server whose /ws handler sends scripted frames, then closes."""
    state = {"frames": [], "auth": None, "received": []}

    async def handler(request):
        state["auth"] = request.headers.get("Authorization")
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        for frame in state["frames"]:
            if isinstance(frame, bytes):
                await ws.send_bytes(frame)
            else:
                await ws.send_str(frame)
        if state.get("echo"):
            msg = await ws.receive()
            state["received"].append(msg.data)
        await ws.close()
        return ws

    app = web.Application()
    app.router.add_get("/ws", handler)
    server = TestServer(app)
    await server.start_server()
    yield server, state
    await server.close()


def ws_url(server: TestServer, path: str) -> str:
    return str(server.make_url(path).with_scheme("ws"))


class TestWebSocketSession:
    """WebSocketSession.open() / iter_text() / close()."""

    async def test_iterates_text_frames(self, ws_server):
        server, state = ws_server
        state["frames"] = ['{"type":"a"}', '{"type":"b"}']

        session = await WebSocketSession.open(ws_url(server, "/ws"))
        frames = [frame async for frame in session.iter_text()]
        await session.close()

        assert frames == ['{"type":"a"}', '{"type":"b"}']
        assert session.closed

    async def test_binary_decoded(self, ws_server):
        server, state = ws_server
        state["frames"] = [b'{"type":"bin"}']

        session = await WebSocketSession.open(ws_url(server, "/ws"))
        frames = [frame async for frame in session.iter_text()]
        await session.close()

        assert frames == ['{"type":"bin"}']

    async def test_auth_header_sent(self, ws_server):
        server, state = ws_server

        session = await WebSocketSession.open(ws_url(server, "/ws"), auth=basic_auth("pw"))
        await session.close()

        assert state["auth"] == aiohttp.BasicAuth("", "pw").encode()

    async def test_send_text(self, ws_server):
        server, state = ws_server
        state["echo"] = True

        session = await WebSocketSession.open(ws_url(server, "/ws"))
        await session.send_text("hello")
        async for _ in session.iter_text():
            pass
        await session.close()

        assert state["received"] == ["hello"]

    async def test_refused(self):
        with pytest.raises(ConnectivityError, match="failed"):
            await WebSocketSession.open(f"ws://127.0.0.1:{unused_port()}/ws", connect_timeout=2.0)

    async def test_not_websocket(self, ws_server):
        server, _ = ws_server
        with pytest.raises(ConnectivityError):
            await WebSocketSession.open(ws_url(server, "/missing"))

    async def test_close_idempotent(self, ws_server):
        server, _ = ws_server
        session = await WebSocketSession.open(ws_url(server, "/ws"))
        await session.close()
        await session.close()
        assert session.closed

