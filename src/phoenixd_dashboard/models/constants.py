"""Shared constants for the models layer.

Enumerations used across model, relay and service modules. Keeping them here
avoids circular imports between the models and relay layers.
"""

from __future__ import annotations

from enum import StrEnum


class EventKind(StrEnum):
    """Discriminator of a feed [Event][phoenixd_dashboard.models.event.Event].

    Values equal the ``type`` strings phoenixd sends. Matching is exact and
    case-sensitive; anything else becomes ``UNKNOWN``.
    """

    PAYMENT_RECEIVED = "payment_received"
    CHANNEL_OPENED = "channel_opened"
    CHANNEL_CLOSED = "channel_closed"
    UNKNOWN = "unknown"


class ConnectionState(StrEnum):
    """Lifecycle of one feed connection.

    ``DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED`` repeats until
    the owner shuts the connection down; ``SHUT_DOWN`` is terminal.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SHUT_DOWN = "shut_down"


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging, metrics and the CLI.

    Attributes:
        DASHBOARD: The relay, REST pass-through and WebSocket hub
            ([Dashboard][phoenixd_dashboard.services.dashboard.Dashboard]).
        WATCHER: A subscriber that logs payments from a running dashboard
            ([Watcher][phoenixd_dashboard.services.watcher.Watcher]).
    """

    DASHBOARD = "dashboard"
    WATCHER = "watcher"


class PaymentDirection(StrEnum):
    """``kind`` column of the payment audit log."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"
