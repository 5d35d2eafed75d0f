"""Dashboard backend: phoenixd event relay, REST pass-through and WebSocket hub.

See Also:
    [Dashboard][phoenixd_dashboard.services.dashboard.service.Dashboard]: The
        service class.
    [DashboardConfig][phoenixd_dashboard.services.dashboard.configs.DashboardConfig]:
        Service configuration.
"""

from .configs import DashboardConfig, HubConfig, PaymentLogConfig
from .service import Dashboard, WebSocketSubscriber


__all__ = [
    "Dashboard",
    "DashboardConfig",
    "HubConfig",
    "PaymentLogConfig",
    "WebSocketSubscriber",
]
