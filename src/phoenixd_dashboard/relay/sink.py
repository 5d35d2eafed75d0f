"""
Payment audit-log writer that never blocks the relay.

[PaymentLogSink][phoenixd_dashboard.relay.sink.PaymentLogSink] is registered
as an upstream listener. ``submit()`` only enqueues; a background task drains
the queue in batches into
[PaymentStore.insert_payment_logs()][phoenixd_dashboard.core.store.PaymentStore.insert_payment_logs].
A full queue drops the record with a warning and a database failure is
logged, so neither can slow down or break the broadcast path.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Protocol

from phoenixd_dashboard.core.logger import Logger
from phoenixd_dashboard.models.event import Event, PaymentReceived
from phoenixd_dashboard.models.payment_log import PaymentLogRecord


class PaymentWriter(Protocol):
    async def insert_payment_logs(self, records: list[PaymentLogRecord]) -> int: ...


class PaymentLogSink:
    """Bounded queue plus batch writer in front of the payment store.

    Attributes:
        records_logged: Rows the store reported as inserted.
        records_dropped: Records lost to a full queue.
        records_failed: Records in batches the store rejected.
    """

    def __init__(
        self,
        store: PaymentWriter,
        *,
        queue_size: int = 1000,
        batch_size: int = 100,
    ) -> None:
        if queue_size < 1 or batch_size < 1:
            raise ValueError("queue_size and batch_size must be >= 1")
        self._store = store
        self._batch_size = batch_size
        self._queue: asyncio.Queue[PaymentLogRecord] = asyncio.Queue(maxsize=queue_size)
        self._writer_task: asyncio.Task[None] | None = None
        self._flush_task: asyncio.Task[None] | None = None
        self._logger = Logger("payment_log")

        self.records_logged = 0
        self.records_dropped = 0
        self.records_failed = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._writer_task is not None and not self._writer_task.done()

    def submit(self, event: Event) -> None:
        """Queue a record for ``PaymentReceived`` events; ignore everything else."""
        if not isinstance(event, PaymentReceived):
            return
        record = PaymentLogRecord.from_event(event)
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            self.records_dropped += 1
            self._logger.warning(
                "payment_log_dropped",
                payment_hash=record.payment_hash,
                reason="queue_full",
            )

    def start(self) -> None:
        if self.is_running:
            return
        self._writer_task = asyncio.create_task(self._run_writer(), name="payment-log-writer")

    async def stop(self) -> None:
        """Stop the writer, let an in-flight batch finish, then flush the queue.

        The writer is only cancelled while it waits for records; a batch
        already handed to the store is awaited, not abandoned.
        """
        if self._writer_task is not None:
            self._writer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer_task
            self._writer_task = None
        if self._flush_task is not None:
            await self._flush_task
            self._flush_task = None
        while not self._queue.empty():
            await self._flush(self._take_batch())

    def _take_batch(self, first: PaymentLogRecord | None = None) -> list[PaymentLogRecord]:
        batch = [] if first is None else [first]
        while len(batch) < self._batch_size and not self._queue.empty():
            batch.append(self._queue.get_nowait())
        return batch

    async def _run_writer(self) -> None:
        while True:
            first = await self._queue.get()
            self._flush_task = asyncio.create_task(
                self._flush(self._take_batch(first)), name="payment-log-flush"
            )
            await asyncio.shield(self._flush_task)
            self._flush_task = None

    async def _flush(self, batch: list[PaymentLogRecord]) -> None:
        if not batch:
            return
        try:
            inserted = await self._store.insert_payment_logs(batch)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # Audit-log failures stay out of the relay path
            self.records_failed += len(batch)
            self._logger.error("payment_log_write_failed", count=len(batch), error=str(e))
            return
        self.records_logged += inserted
        self._logger.debug("payment_log_written", count=inserted)
