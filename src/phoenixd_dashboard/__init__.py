r"""phoenixd Dashboard -- backend for a web dashboard over a phoenixd Lightning node.

The dashboard service relays phoenixd's real-time payment notifications to
browser WebSocket subscribers and proxies the node's HTTP API as REST.

Imports flow strictly downward:

```text
                 services            Dashboard, Watcher
                /    |    \
           relay  phoenixd  |        Event relay, node API client
                \    |    /
              core       utils       Infrastructure and transport
                 \       /
                  models             Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Feed events and payment log records. Zero I/O.
    core: Base service, exceptions, logging, metrics, Postgres pool and store.
    utils: WebSocket and bounded HTTP helpers.
    phoenixd: HTTP API client for the node daemon.
    relay: Upstream adapter, reconnect supervisor, broadcast hub, listener.
    services: Dashboard and Watcher.

Note:
    Top-level imports (``from phoenixd_dashboard import Dashboard``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("phoenixd-dashboard")

__all__ = [
    "BaseService",
    "BroadcastHub",
    "Dashboard",
    "DashboardConfig",
    "DownstreamListener",
    "Event",
    "Logger",
    "PaymentLogRecord",
    "PaymentReceived",
    "PaymentStore",
    "PhoenixdClient",
    "PhoenixdConfig",
    "ReconnectConfig",
    "ReconnectSupervisor",
    "UpstreamAdapter",
    "Watcher",
    "WatcherConfig",
    "parse_event",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("phoenixd_dashboard.core", "BaseService"),
    "Logger": ("phoenixd_dashboard.core", "Logger"),
    "PaymentStore": ("phoenixd_dashboard.core.store", "PaymentStore"),
    "Event": ("phoenixd_dashboard.models", "Event"),
    "PaymentLogRecord": ("phoenixd_dashboard.models", "PaymentLogRecord"),
    "PaymentReceived": ("phoenixd_dashboard.models", "PaymentReceived"),
    "parse_event": ("phoenixd_dashboard.models", "parse_event"),
    "PhoenixdClient": ("phoenixd_dashboard.phoenixd", "PhoenixdClient"),
    "PhoenixdConfig": ("phoenixd_dashboard.phoenixd", "PhoenixdConfig"),
    "BroadcastHub": ("phoenixd_dashboard.relay", "BroadcastHub"),
    "DownstreamListener": ("phoenixd_dashboard.relay", "DownstreamListener"),
    "ReconnectConfig": ("phoenixd_dashboard.relay", "ReconnectConfig"),
    "ReconnectSupervisor": ("phoenixd_dashboard.relay", "ReconnectSupervisor"),
    "UpstreamAdapter": ("phoenixd_dashboard.relay", "UpstreamAdapter"),
    "Dashboard": ("phoenixd_dashboard.services", "Dashboard"),
    "DashboardConfig": ("phoenixd_dashboard.services", "DashboardConfig"),
    "Watcher": ("phoenixd_dashboard.services", "Watcher"),
    "WatcherConfig": ("phoenixd_dashboard.services", "WatcherConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'phoenixd_dashboard' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
