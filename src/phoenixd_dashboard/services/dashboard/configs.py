"""Dashboard service configuration models.

See Also:
    [Dashboard][phoenixd_dashboard.services.dashboard.Dashboard]: The service
        class that consumes these configurations.
    [BaseServiceConfig][phoenixd_dashboard.core.base_service.BaseServiceConfig]:
        Base class providing ``interval``, ``max_consecutive_failures``, and
        ``metrics`` fields.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from phoenixd_dashboard.core.base_service import BaseServiceConfig
from phoenixd_dashboard.core.store import StoreConfig  # noqa: TC001 (Pydantic runtime)
from phoenixd_dashboard.phoenixd.configs import PhoenixdConfig
from phoenixd_dashboard.relay.supervisor import ReconnectConfig


class HubConfig(BaseModel):
    """Downstream WebSocket endpoint settings."""

    path: str = Field(default="/ws", description="WebSocket route for subscribers")
    send_timeout: float = Field(
        default=5.0, ge=0.1, le=60.0, description="Per-subscriber send timeout (s)"
    )
    outbox_size: int = Field(
        default=16, ge=1, le=10_000, description="Queued messages before a subscriber is dropped"
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("path must start with '/'")
        return v


class PaymentLogConfig(BaseModel):
    """Optional PostgreSQL audit log of received payments.

    ``store`` is only required (and its ``DB_PASSWORD`` only resolved) when
    ``enabled`` is true.
    """

    enabled: bool = Field(default=False, description="Persist received payments")
    queue_size: int = Field(default=1000, ge=1, le=100_000)
    batch_size: int = Field(default=100, ge=1, le=10_000)
    store: StoreConfig | None = Field(default=None, description="Database settings")

    @model_validator(mode="after")
    def _require_store(self) -> PaymentLogConfig:
        if self.enabled and self.store is None:
            raise ValueError("payment_log.store is required when payment_log.enabled is true")
        return self


class DashboardConfig(BaseServiceConfig):
    """Configuration for the Dashboard service.

    Attributes:
        host: Bind address for the HTTP/WebSocket server.
        port: Port for the HTTP/WebSocket server.
        cors_origins: Allowed CORS origins. Empty list disables CORS.
        phoenixd: Node daemon URL, password source and timeouts.
        reconnect: Upstream feed retry timing.
        hub: Downstream WebSocket settings.
        payment_log: Optional audit log.
    """

    host: str = Field(default="0.0.0.0", description="HTTP bind address")  # noqa: S104
    port: int = Field(default=4001, ge=1, le=65535, description="HTTP port")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Browser origins allowed to call the REST API",
    )
    phoenixd: PhoenixdConfig = Field(default_factory=PhoenixdConfig)
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)
    hub: HubConfig = Field(default_factory=HubConfig)
    payment_log: PaymentLogConfig = Field(default_factory=PaymentLogConfig)
