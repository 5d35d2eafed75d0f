"""Frozen dataclasses with zero I/O for feed events and payment records.

The models layer sits at the bottom of the package. Apart from the standard
library it only imports the dependency-free
[phoenixd_dashboard.core.exceptions][] module, for
[ParseError][phoenixd_dashboard.core.exceptions.ParseError]. Every model uses
``@dataclass(frozen=True, slots=True)`` and validates in ``__post_init__``,
so invalid instances never escape the constructor.

Attributes:
    Event: Closed union of the feed event variants.
    parse_event: Decode one feed frame into an ``Event``.
    PaymentLogRecord: One row of the payment audit log.
    EventKind: ``type`` discriminator values.
    ConnectionState: Feed connection lifecycle states.
    ServiceName: Service identifiers.
"""

from .constants import ConnectionState, EventKind, PaymentDirection, ServiceName
from .event import (
    BaseEvent,
    ChannelClosed,
    ChannelOpened,
    Event,
    PaymentReceived,
    UnknownEvent,
    parse_event,
)
from .payment_log import PaymentLogDbParams, PaymentLogRecord


__all__ = [
    "BaseEvent",
    "ChannelClosed",
    "ChannelOpened",
    "ConnectionState",
    "Event",
    "EventKind",
    "PaymentDirection",
    "PaymentLogDbParams",
    "PaymentLogRecord",
    "PaymentReceived",
    "ServiceName",
    "UnknownEvent",
    "parse_event",
]
