"""Real-time payment-notification relay.

```text
phoenixd /websocket
      |
UpstreamAdapter --(parse_event)--> listeners
      ^                               |-- BroadcastHub --> /ws subscribers --> DownstreamListener
      |                               '-- PaymentLogSink --> PaymentStore
ReconnectSupervisor
```

Attributes:
    UpstreamAdapter: Single connection to the phoenixd feed.
    ReconnectSupervisor: Retry policy wrapped around any feed connection.
    BroadcastHub: Concurrent fan-out to downstream subscribers.
    DownstreamListener: Subscriber-side client with the same retry policy.
    PaymentLogSink: Non-blocking audit-log writer.
"""

from .hub import BroadcastHub, Subscriber
from .listener import DEFAULT_HUB_URL, DownstreamListener, HubConnection, payment_filter
from .sink import PaymentLogSink
from .supervisor import FeedConnection, ReconnectConfig, ReconnectSupervisor, invoke_callback
from .upstream import UpstreamAdapter


__all__ = [
    "DEFAULT_HUB_URL",
    "BroadcastHub",
    "DownstreamListener",
    "FeedConnection",
    "HubConnection",
    "PaymentLogSink",
    "ReconnectConfig",
    "ReconnectSupervisor",
    "Subscriber",
    "UpstreamAdapter",
    "invoke_callback",
    "payment_filter",
]
