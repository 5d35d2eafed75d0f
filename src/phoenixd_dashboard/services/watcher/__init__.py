"""Headless subscriber that logs payments relayed by a running dashboard.

See Also:
    [Watcher][phoenixd_dashboard.services.watcher.service.Watcher]: The
        service class.
    [WatcherConfig][phoenixd_dashboard.services.watcher.configs.WatcherConfig]:
        Service configuration.
"""

from .configs import WatcherConfig
from .service import Watcher


__all__ = ["Watcher", "WatcherConfig"]
