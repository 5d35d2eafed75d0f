"""
Payment audit-log persistence.

[PaymentStore][phoenixd_dashboard.core.store.PaymentStore] owns a
[Pool][phoenixd_dashboard.core.pool.Pool] and exposes the three operations the
dashboard needs: create the ``payment_log`` table, bulk-insert records, and
page through them newest first.

Bulk inserts pass one array per column and expand them with ``unnest`` so a
whole batch is a single round trip.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field

from phoenixd_dashboard.models.payment_log import PaymentLogDbParams, PaymentLogRecord

from .logger import Logger
from .pool import Pool, PoolConfig


CREATE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS payment_log (
    id BIGSERIAL PRIMARY KEY,
    kind TEXT NOT NULL,
    payment_hash TEXT NOT NULL,
    amount_sat BIGINT NOT NULL CHECK (amount_sat >= 0),
    status TEXT NOT NULL,
    raw_event JSONB NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS payment_log_created_at_idx ON payment_log (created_at DESC);
CREATE INDEX IF NOT EXISTS payment_log_payment_hash_idx ON payment_log (payment_hash);
"""

INSERT_SQL = """
INSERT INTO payment_log (kind, payment_hash, amount_sat, status, raw_event, created_at)
SELECT kind, payment_hash, amount_sat, status, raw_event::jsonb, created_at
FROM unnest($1::text[], $2::text[], $3::bigint[], $4::text[], $5::text[], $6::timestamptz[])
    AS t(kind, payment_hash, amount_sat, status, raw_event, created_at)
"""

SELECT_SQL = """
SELECT kind, payment_hash, amount_sat, status, raw_event, created_at
FROM payment_log
ORDER BY created_at DESC, id DESC
LIMIT $1 OFFSET $2
"""


class StoreConfig(BaseModel):
    """Audit-log database settings."""

    pool: PoolConfig = Field(default_factory=PoolConfig)
    batch_max_size: int = Field(default=500, ge=1, le=10_000)
    query_timeout: float | None = Field(default=30.0, ge=0.1)


class PaymentStore:
    """asyncpg-backed facade over the ``payment_log`` table.

    Example:
        store = PaymentStore(StoreConfig())

        async with store:
            await store.create_schema()
            await store.insert_payment_logs([record])
            latest = await store.list_payment_logs(limit=20)
    """

    def __init__(self, config: StoreConfig | None = None, pool: Pool | None = None) -> None:
        self._config = config or StoreConfig()
        self._pool = pool or Pool(self._config.pool)
        self._logger = Logger("store")

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def is_connected(self) -> bool:
        return self._pool.is_connected

    @staticmethod
    def _transpose_to_columns(params: Sequence[tuple[Any, ...]]) -> tuple[list[Any], ...]:
        """Turn row tuples into one list per column for array parameters."""
        if not params:
            return ()
        return tuple(list(col) for col in zip(*params, strict=True))

    async def create_schema(self) -> None:
        """Create the ``payment_log`` table and indexes if missing."""
        await self._pool.execute(CREATE_SCHEMA_SQL, timeout=self._config.query_timeout)
        self._logger.info("schema_ready")

    async def insert_payment_logs(self, records: Sequence[PaymentLogRecord]) -> int:
        """Insert ``records`` in one statement.

        Returns:
            Number of rows inserted.

        Raises:
            ValueError: If the batch exceeds ``batch_max_size``.
            asyncpg.PostgresError: On database errors.
        """
        if not records:
            return 0
        if len(records) > self._config.batch_max_size:
            raise ValueError(
                f"insert_payment_logs batch size ({len(records)}) exceeds maximum "
                f"({self._config.batch_max_size})"
            )

        columns = self._transpose_to_columns([r.to_db_params() for r in records])
        status = await self._pool.execute(INSERT_SQL, *columns, timeout=self._config.query_timeout)
        # "INSERT 0 <rows>"
        inserted = int(status.split()[-1])
        self._logger.debug("payment_logs_inserted", count=inserted, attempted=len(records))
        return inserted

    async def list_payment_logs(self, limit: int = 50, offset: int = 0) -> list[PaymentLogRecord]:
        """Return logged payments newest first."""
        if limit < 1 or offset < 0:
            raise ValueError("limit must be >= 1 and offset >= 0")
        rows = await self._pool.fetch(SELECT_SQL, limit, offset, timeout=self._config.query_timeout)
        return [PaymentLogRecord.from_db_params(PaymentLogDbParams(**dict(row))) for row in rows]

    async def connect(self) -> None:
        await self._pool.connect()

    async def close(self) -> None:
        await self._pool.close()

    async def __aenter__(self) -> PaymentStore:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"PaymentStore(connected={self.is_connected})"
