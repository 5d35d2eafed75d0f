"""Watcher service: log every payment relayed by a dashboard hub.

The watcher is the reference consumer of the ``/ws`` endpoint. It holds a
[DownstreamListener][phoenixd_dashboard.relay.listener.DownstreamListener]
open for its whole lifetime and logs ``payment_received`` for each
[PaymentReceived][phoenixd_dashboard.models.event.PaymentReceived]
(optionally only the one matching ``payment_hash``). Each ``run()`` cycle
reports connection state and counts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from phoenixd_dashboard.core.base_service import BaseService
from phoenixd_dashboard.models.constants import ServiceName
from phoenixd_dashboard.relay.listener import DownstreamListener, payment_filter

from .configs import WatcherConfig


if TYPE_CHECKING:
    from types import TracebackType

    from phoenixd_dashboard.models.event import PaymentReceived


class Watcher(BaseService[WatcherConfig]):
    """Subscribe to a dashboard and log received payments."""

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.WATCHER
    CONFIG_CLASS: ClassVar[type[WatcherConfig]] = WatcherConfig

    def __init__(
        self,
        config: WatcherConfig | None = None,
        *,
        listener: DownstreamListener | None = None,
    ) -> None:
        super().__init__(config)
        self._listener = listener or DownstreamListener(
            self._config.hub_url,
            self._config.reconnect,
            connect_timeout=self._config.connect_timeout,
        )
        self.payments_seen = 0
        self._reported_payments = 0

    @property
    def listener(self) -> DownstreamListener:
        return self._listener

    async def __aenter__(self) -> Watcher:
        await super().__aenter__()
        self._listener.start(
            on_connect=self._on_connect,
            on_disconnect=self._on_disconnect,
            on_event=payment_filter(self._config.payment_hash, self._on_payment),
        )
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self._listener.stop()
        await super().__aexit__(_exc_type, _exc_val, _exc_tb)

    async def run(self) -> None:
        connected = self._listener.is_connected
        self.set_gauge("hub_connected", int(connected))
        self.inc_counter("payments_seen", self.payments_seen - self._reported_payments)
        self._reported_payments = self.payments_seen
        self._logger.info(
            "cycle_stats",
            connected=connected,
            payments_seen=self.payments_seen,
            messages_received=self._listener.messages_received,
            messages_discarded=self._listener.messages_discarded,
        )

    def _on_connect(self) -> None:
        self._logger.info("hub_connected", url=self._listener.url)

    def _on_disconnect(self) -> None:
        self._logger.warning("hub_disconnected", url=self._listener.url)

    def _on_payment(self, payment: PaymentReceived) -> None:
        self.payments_seen += 1
        self._logger.info(
            "payment_received",
            amount_sat=payment.amount_sat,
            payment_hash=payment.payment_hash,
            payer_note=payment.payer_note,
            external_id=payment.external_id,
        )
