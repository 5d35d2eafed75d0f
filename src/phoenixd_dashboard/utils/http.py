"""HTTP utilities for the phoenixd REST client.

Bounded body reading so an oversized or runaway upstream response cannot
exhaust memory.

Note:
    This module sits in the ``utils`` layer and depends only on stdlib and
    ``aiohttp``.
"""

from __future__ import annotations

import json
from typing import Any

import aiohttp


async def read_bounded(response: aiohttp.ClientResponse, max_size: int) -> bytes:
    """Read an entire response body with size enforcement.

    Accumulates chunks until EOF, so chunked transfer-encoding is handled
    even when a single read returns fewer bytes than requested.

    Raises:
        ValueError: If the body exceeds ``max_size`` bytes.
    """
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await response.content.read(max_size + 1 - total)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise ValueError(f"Response body too large: >{max_size} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


async def read_bounded_text(response: aiohttp.ClientResponse, max_size: int) -> str:
    """Read a bounded body and decode it with the response charset (UTF-8 default)."""
    body = await read_bounded(response, max_size)
    return body.decode(response.charset or "utf-8", errors="replace")


async def read_bounded_json(response: aiohttp.ClientResponse, max_size: int) -> Any:
    """Read and parse a bounded JSON body.

    Raises:
        ValueError: If the body exceeds ``max_size``.
        json.JSONDecodeError: If the body is not valid JSON.
    """
    body = await read_bounded(response, max_size)
    return json.loads(body)
