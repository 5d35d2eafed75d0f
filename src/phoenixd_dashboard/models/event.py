"""
Typed events decoded from the phoenixd notification feed.

Every text frame phoenixd pushes over ``/websocket`` is a JSON object with a
``type`` discriminator. [parse_event()][phoenixd_dashboard.models.event.parse_event]
turns one frame into exactly one variant of the closed union
[Event][phoenixd_dashboard.models.event.Event]:

* [PaymentReceived][phoenixd_dashboard.models.event.PaymentReceived]
* [ChannelOpened][phoenixd_dashboard.models.event.ChannelOpened]
* [ChannelClosed][phoenixd_dashboard.models.event.ChannelClosed]
* [UnknownEvent][phoenixd_dashboard.models.event.UnknownEvent] for any other
  ``type``, so new phoenixd notifications are relayed rather than dropped.

Each variant keeps the decoded frame in ``raw`` (deep-frozen) and
[to_json()][phoenixd_dashboard.models.event.BaseEvent.to_json] re-serialises
it with the same keys and values, which is what subscribers receive.

Examples:
    ```python
    event = parse_event('{"type": "payment_received", "amountSat": 1000}')
    match event:
        case PaymentReceived(amount_sat=amount):
            print(amount)  # 1000
        case _:
            pass
    ```
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from phoenixd_dashboard.core.exceptions import ParseError

from ._validation import (
    deep_freeze,
    thaw,
    validate_mapping,
    validate_non_negative_int,
    validate_optional_str,
    validate_payment_hash,
)
from .constants import EventKind


def _freeze_raw(event: BaseEvent) -> None:
    validate_mapping(event.raw, "raw")
    object.__setattr__(event, "raw", deep_freeze(event.raw))


@dataclass(frozen=True, slots=True)
class BaseEvent:
    """Fields and serialisation shared by every feed event.

    Attributes:
        raw: The complete decoded frame, read-only.
    """

    kind: ClassVar[EventKind]

    raw: Mapping[str, Any]

    def __post_init__(self) -> None:
        _freeze_raw(self)

    @property
    def type(self) -> str:
        """The ``type`` string exactly as phoenixd sent it."""
        return str(self.raw.get("type", self.kind))

    def to_dict(self) -> dict[str, Any]:
        """Return a mutable deep copy of the frame."""
        result: dict[str, Any] = thaw(self.raw)
        return result

    def to_json(self) -> str:
        """Serialise the frame for downstream subscribers."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class PaymentReceived(BaseEvent):
    """An incoming Lightning payment settled on the node.

    Attributes:
        amount_sat: Amount in satoshis, when phoenixd reported it.
        payment_hash: 64-char lowercase hex payment hash, when reported.
        payer_note: Free-text note attached by the payer (BOLT12).
        payer_key: Payer public key (BOLT12).
        external_id: Caller-supplied id given at invoice creation.
    """

    kind: ClassVar[EventKind] = EventKind.PAYMENT_RECEIVED

    amount_sat: int | None = None
    payment_hash: str | None = None
    payer_note: str | None = None
    payer_key: str | None = None
    external_id: str | None = None

    def __post_init__(self) -> None:
        _freeze_raw(self)
        if self.amount_sat is not None:
            validate_non_negative_int(self.amount_sat, "amount_sat")
        validate_payment_hash(self.payment_hash)
        validate_optional_str(self.payer_note, "payer_note")
        validate_optional_str(self.payer_key, "payer_key")
        validate_optional_str(self.external_id, "external_id")


@dataclass(frozen=True, slots=True)
class ChannelOpened(BaseEvent):
    """A channel to the LSP was opened (or spliced in)."""

    kind: ClassVar[EventKind] = EventKind.CHANNEL_OPENED

    channel_id: str | None = None

    def __post_init__(self) -> None:
        _freeze_raw(self)
        validate_optional_str(self.channel_id, "channel_id")


@dataclass(frozen=True, slots=True)
class ChannelClosed(BaseEvent):
    """A channel was closed."""

    kind: ClassVar[EventKind] = EventKind.CHANNEL_CLOSED

    channel_id: str | None = None

    def __post_init__(self) -> None:
        _freeze_raw(self)
        validate_optional_str(self.channel_id, "channel_id")


@dataclass(frozen=True, slots=True)
class UnknownEvent(BaseEvent):
    """Any frame whose ``type`` is not one of the recognised kinds."""

    kind: ClassVar[EventKind] = EventKind.UNKNOWN


Event = PaymentReceived | ChannelOpened | ChannelClosed | UnknownEvent


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def _opt_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    return value if isinstance(value, str) else None


def parse_event(frame: str | bytes | Mapping[str, Any]) -> Event:
    """Decode one feed frame into an [Event][phoenixd_dashboard.models.event.Event].

    Args:
        frame: A UTF-8 JSON text frame, or an already decoded mapping.

    Returns:
        The matching variant. Unrecognised ``type`` values produce
        [UnknownEvent][phoenixd_dashboard.models.event.UnknownEvent].

    Raises:
        ParseError: If the frame is not valid JSON, is not a JSON object,
            has no string ``type``, nests too deeply, uses ``NaN``/``Infinity``,
            or is a ``payment_received`` frame whose ``amountSat`` or
            ``paymentHash`` has the wrong type or shape.
    """
    if isinstance(frame, Mapping):
        data: Any = frame
    else:
        try:
            data = json.loads(frame, parse_constant=_reject_constant)
        except (ValueError, RecursionError) as e:
            raise ParseError(f"frame is not valid JSON: {e}") from e

    if not isinstance(data, Mapping):
        raise ParseError(f"frame must be a JSON object, got {type(data).__name__}")

    event_type = data.get("type")
    if not isinstance(event_type, str):
        raise ParseError("frame has no string 'type' field")

    try:
        match event_type:
            case EventKind.PAYMENT_RECEIVED:
                return PaymentReceived(
                    raw=data,
                    amount_sat=data.get("amountSat"),
                    payment_hash=data.get("paymentHash"),
                    payer_note=_opt_str(data, "payerNote"),
                    payer_key=_opt_str(data, "payerKey"),
                    external_id=_opt_str(data, "externalId"),
                )
            case EventKind.CHANNEL_OPENED:
                return ChannelOpened(raw=data, channel_id=_opt_str(data, "channelId"))
            case EventKind.CHANNEL_CLOSED:
                return ChannelClosed(raw=data, channel_id=_opt_str(data, "channelId"))
            case _:
                return UnknownEvent(raw=data)
    except (TypeError, ValueError, RecursionError) as e:
        raise ParseError(f"invalid {event_type} frame: {e}") from e
