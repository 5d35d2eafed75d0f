"""Watcher service configuration models."""

from __future__ import annotations

from pydantic import Field, field_validator

from phoenixd_dashboard.core.base_service import BaseServiceConfig
from phoenixd_dashboard.models._validation import PAYMENT_HASH_PATTERN
from phoenixd_dashboard.relay.listener import DEFAULT_HUB_URL
from phoenixd_dashboard.relay.supervisor import ReconnectConfig


class WatcherConfig(BaseServiceConfig):
    """Configuration for the Watcher service.

    Attributes:
        hub_url: Dashboard WebSocket endpoint to subscribe to.
        payment_hash: Only report this payment when set.
        connect_timeout: Per-attempt connect timeout in seconds.
        reconnect: Retry timing after a drop.
    """

    hub_url: str = Field(default=DEFAULT_HUB_URL, description="Dashboard /ws endpoint")
    payment_hash: str | None = Field(default=None, description="Only report this payment")
    connect_timeout: float = Field(default=10.0, ge=0.1, le=120.0)
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)

    @field_validator("hub_url")
    @classmethod
    def validate_hub_url(cls, v: str) -> str:
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("hub_url must use ws:// or wss://")
        return v

    @field_validator("payment_hash")
    @classmethod
    def validate_payment_hash(cls, v: str | None) -> str | None:
        if v is not None and not PAYMENT_HASH_PATTERN.match(v):
            raise ValueError("payment_hash must be 64 lowercase hex characters")
        return v
