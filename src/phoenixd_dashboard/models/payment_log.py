"""
Audit-log record for a payment seen on the event feed.

[PaymentLogRecord][phoenixd_dashboard.models.payment_log.PaymentLogRecord] is
what [PaymentLogSink][phoenixd_dashboard.relay.sink.PaymentLogSink] queues and
[PaymentStore][phoenixd_dashboard.core.store.PaymentStore] persists into the
``payment_log`` table.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, NamedTuple

from ._validation import (
    deep_freeze,
    thaw,
    validate_instance,
    validate_mapping,
    validate_non_negative_int,
)
from .constants import PaymentDirection
from .event import PaymentReceived


UNKNOWN_PAYMENT_HASH = "unknown"
STATUS_COMPLETED = "completed"


class PaymentLogDbParams(NamedTuple):
    """Positional parameters for one ``payment_log`` row."""

    kind: str
    payment_hash: str
    amount_sat: int
    status: str
    raw_event: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class PaymentLogRecord:
    """One row of the payment audit log.

    Attributes:
        kind: ``incoming`` or ``outgoing``.
        payment_hash: Payment hash, or ``"unknown"`` when the event had none.
        amount_sat: Amount in satoshis (0 when the event had none).
        status: Settlement status as reported (``"completed"`` for feed events).
        raw_event: The originating frame, read-only.
        created_at: When the record was created (timezone-aware, UTC).
    """

    kind: PaymentDirection
    payment_hash: str
    amount_sat: int
    status: str
    raw_event: Mapping[str, Any]
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", PaymentDirection(self.kind))
        validate_instance(self.payment_hash, str, "payment_hash")
        if not self.payment_hash:
            raise ValueError("payment_hash must not be empty")
        validate_non_negative_int(self.amount_sat, "amount_sat")
        validate_instance(self.status, str, "status")
        validate_mapping(self.raw_event, "raw_event")
        validate_instance(self.created_at, datetime, "created_at")
        if self.created_at.tzinfo is None:
            raise ValueError("created_at must be timezone-aware")
        object.__setattr__(self, "raw_event", deep_freeze(self.raw_event))

    @classmethod
    def from_event(cls, event: PaymentReceived) -> PaymentLogRecord:
        """Build an ``incoming``/``completed`` record from a feed payment."""
        return cls(
            kind=PaymentDirection.INCOMING,
            payment_hash=event.payment_hash or UNKNOWN_PAYMENT_HASH,
            amount_sat=event.amount_sat or 0,
            status=STATUS_COMPLETED,
            raw_event=event.raw,
        )

    def to_db_params(self) -> PaymentLogDbParams:
        return PaymentLogDbParams(
            kind=str(self.kind),
            payment_hash=self.payment_hash,
            amount_sat=self.amount_sat,
            status=self.status,
            raw_event=json.dumps(thaw(self.raw_event)),
            created_at=self.created_at,
        )

    @classmethod
    def from_db_params(cls, params: PaymentLogDbParams) -> PaymentLogRecord:
        raw = params.raw_event
        if isinstance(raw, str):
            raw = json.loads(raw)
        return cls(
            kind=PaymentDirection(params.kind),
            payment_hash=params.payment_hash,
            amount_sat=params.amount_sat,
            status=params.status,
            raw_event=raw,
            created_at=params.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form used by ``GET /api/payments/log``."""
        return {
            "type": str(self.kind),
            "paymentHash": self.payment_hash,
            "amountSat": self.amount_sat,
            "status": self.status,
            "rawData": thaw(self.raw_event),
            "createdAt": self.created_at.isoformat(),
        }
