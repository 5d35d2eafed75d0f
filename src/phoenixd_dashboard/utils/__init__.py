"""Transport and HTTP helpers shared by the relay and phoenixd packages.

Attributes:
    WebSocketSession: One client WebSocket plus its owning aiohttp session.
    websocket_url: Derive ``ws(s)://`` URLs from ``http(s)://`` base URLs.
    basic_auth: phoenixd-style Basic credentials (empty username).
    read_bounded_json: Size-capped JSON body reader.
    read_bounded_text: Size-capped text body reader.
"""

from .http import read_bounded, read_bounded_json, read_bounded_text
from .transport import WebSocketSession, basic_auth, websocket_url


__all__ = [
    "WebSocketSession",
    "basic_auth",
    "read_bounded",
    "read_bounded_json",
    "read_bounded_text",
    "websocket_url",
]
