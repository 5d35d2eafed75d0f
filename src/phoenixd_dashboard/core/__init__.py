"""Core layer providing the foundation for all dashboard services.

Sits between ``phoenixd_dashboard.models`` and the relay, phoenixd and
services packages.

Attributes:
    BaseService: Abstract generic base class with lifecycle management
        ([run()][phoenixd_dashboard.core.base_service.BaseService.run] /
        [run_forever()][phoenixd_dashboard.core.base_service.BaseService.run_forever] /
        shutdown), YAML/dict factories and Prometheus integration.
    Pool: Async PostgreSQL connection pool with retry/backoff.
    Logger: Structured logger supporting key=value and JSON output modes.
    MetricsServer: Prometheus ``/metrics`` endpoint.
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.

Note:
    [PaymentStore][phoenixd_dashboard.core.store.PaymentStore] depends on the
    models layer and is imported from ``phoenixd_dashboard.core.store``
    directly.
"""

from .base_service import (
    BaseService,
    BaseServiceConfig,
    ConfigT,
)
from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    DashboardError,
    ParseError,
    SendError,
    UpstreamError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .pool import (
    DatabaseConfig,
    Pool,
    PoolConfig,
    PoolLimitsConfig,
    PoolRetryConfig,
)
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "ConfigT",
    "ConfigurationError",
    "ConnectivityError",
    "DashboardError",
    "DatabaseConfig",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "ParseError",
    "Pool",
    "PoolConfig",
    "PoolLimitsConfig",
    "PoolRetryConfig",
    "SendError",
    "StructuredFormatter",
    "UpstreamError",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]
