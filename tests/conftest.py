"""
Pytest configuration and shared fixtures for dashboard tests.

Provides:
- Sample feed frames and parsed events
- Mock asyncpg pool and connection
- Environment isolation for password variables
"""

from __future__ import annotations

import json
import logging
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from phoenixd_dashboard.models import ChannelOpened, PaymentReceived, parse_event


pytest_plugins = ["tests.fixtures.fakes"]

PAYMENT_HASH = "a" * 64


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real credentials out of config defaults."""
    monkeypatch.delenv("PHOENIXD_PASSWORD", raising=False)
    monkeypatch.delenv("DB_PASSWORD", raising=False)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def payment_frame() -> dict[str, Any]:
    """A ``payment_received`` frame as phoenixd sends it."""
    return {
        "type": "payment_received",
        "timestamp": 1700000000000,
        "amountSat": 1000,
        "paymentHash": PAYMENT_HASH,
        "externalId": "order-42",
        "payerNote": "thanks",
    }


@pytest.fixture
def payment_text(payment_frame: dict[str, Any]) -> str:
    return json.dumps(payment_frame)


@pytest.fixture
def payment_event(payment_frame: dict[str, Any]) -> PaymentReceived:
    event = parse_event(payment_frame)
    assert isinstance(event, PaymentReceived)
    return event


@pytest.fixture
def channel_event() -> ChannelOpened:
    event = parse_event({"type": "channel_opened", "channelId": "c1"})
    assert isinstance(event, ChannelOpened)
    return event


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_connection() -> MagicMock:
    """Create a mock asyncpg connection."""
    conn = MagicMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.execute = AsyncMock(return_value="INSERT 0 0")
    return conn


@pytest.fixture
def mock_asyncpg_pool(mock_connection: MagicMock) -> MagicMock:
    """Create a mock asyncpg pool whose ``acquire()`` yields ``mock_connection``."""
    pool = MagicMock()
    pool.close = AsyncMock()

    mock_acquire = MagicMock()
    mock_acquire.__aenter__ = AsyncMock(return_value=mock_connection)
    mock_acquire.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = MagicMock(return_value=mock_acquire)

    return pool
