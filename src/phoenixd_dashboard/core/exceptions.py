"""Exception hierarchy for the dashboard backend.

Each class names one failure category so callers can tell a recoverable
fault from one that must reach the user. ``CancelledError`` is never wrapped.

```text
DashboardError (base -- never raised directly)
├── ConfigurationError   -- bad YAML, invalid fields, missing env vars
├── ConnectivityError    -- event-feed transport failed or dropped (retryable)
├── ParseError           -- a frame or message is not a valid event (discard)
├── SendError            -- delivery to one subscriber failed (unregister)
└── UpstreamError        -- phoenixd REST call answered non-2xx (surface)
```

See Also:
    [ReconnectSupervisor][phoenixd_dashboard.relay.supervisor.ReconnectSupervisor]:
        Contains every
        [ConnectivityError][phoenixd_dashboard.core.exceptions.ConnectivityError]
        and turns it into a scheduled retry.
    [PhoenixdClient][phoenixd_dashboard.phoenixd.client.PhoenixdClient]: Raises
        [UpstreamError][phoenixd_dashboard.core.exceptions.UpstreamError].
"""

from __future__ import annotations


class DashboardError(Exception):
    """Base exception for all dashboard errors."""


class ConfigurationError(DashboardError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Event feed
# ---------------------------------------------------------------------------


class ConnectivityError(DashboardError):
    """A feed connection could not be established, or dropped mid-stream.

    Always retryable. Never shown to the end user beyond a disconnected
    indicator.
    """


class ParseError(DashboardError):
    """A received frame was not valid JSON or lacked the expected fields.

    Recovered locally by logging and discarding the single frame.
    """


class SendError(DashboardError):
    """Sending to one downstream subscriber failed or timed out.

    Recovered locally by unregistering that subscriber.
    """


# ---------------------------------------------------------------------------
# REST
# ---------------------------------------------------------------------------


class UpstreamError(DashboardError):
    """The node daemon answered a REST call with a non-2xx status.

    Attributes:
        status: HTTP status code returned by phoenixd.
        message: Response body (or reason phrase when the body is empty).
    """

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(f"Phoenixd API error: {status} - {message}")
