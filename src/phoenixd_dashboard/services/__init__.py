"""Runnable services built on the relay.

Services are the top layer of the package, depending on
[phoenixd_dashboard.core][phoenixd_dashboard.core],
[phoenixd_dashboard.relay][phoenixd_dashboard.relay],
[phoenixd_dashboard.phoenixd][phoenixd_dashboard.phoenixd] and
[phoenixd_dashboard.models][phoenixd_dashboard.models]. Each service extends
[BaseService][phoenixd_dashboard.core.base_service.BaseService] and
implements ``async def run()`` for one reporting cycle.

```text
phoenixd --> Dashboard (/api/*, /ws) --> browsers, Watcher
```

Attributes:
    Dashboard: Relays the phoenixd event feed to WebSocket subscribers and
        serves the REST pass-through API.
    Watcher: Headless subscriber that logs received payments.

Examples:
    ```python
    from phoenixd_dashboard.services import Dashboard

    dashboard = Dashboard.from_yaml("config/services/dashboard.yaml")
    async with dashboard:
        await dashboard.run_forever()
    ```
"""

from .dashboard import (
    Dashboard,
    DashboardConfig,
)
from .watcher import (
    Watcher,
    WatcherConfig,
)


__all__ = [
    "Dashboard",
    "DashboardConfig",
    "Watcher",
    "WatcherConfig",
]
