"""
Unit tests for core.pool module.

Tests:
- DatabaseConfig password resolution from the environment
- Limit and retry validation
- Retry delay computation
- connect() retry and failure, close() idempotency
- fetch()/execute() retry on connection-level errors
"""

from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest
from pydantic import SecretStr, ValidationError

from phoenixd_dashboard.core.pool import (
    DatabaseConfig,
    Pool,
    PoolConfig,
    PoolLimitsConfig,
    PoolRetryConfig,
)


@pytest.fixture
def db_env(monkeypatch):
    monkeypatch.setenv("DB_PASSWORD", "pw")


def make_config(**retry) -> PoolConfig:
    return PoolConfig(
        database=DatabaseConfig(password=SecretStr("pw")),
        retry=PoolRetryConfig(initial_delay=0.1, max_delay=1.0, **retry),
    )


# ============================================================================
# Configuration
# ============================================================================


class TestDatabaseConfig:
    """Password handling."""

    def test_password_from_env(self, db_env):
        config = DatabaseConfig()
        assert config.password.get_secret_value() == "pw"
        assert config.database == "phoenixd_dashboard"

    def test_missing_env(self):
        with pytest.raises(ValidationError, match="DB_PASSWORD environment variable not set"):
            DatabaseConfig()

    def test_custom_env(self, monkeypatch):
        monkeypatch.setenv("AUDIT_PW", "other")
        assert DatabaseConfig(password_env="AUDIT_PW").password.get_secret_value() == "other"

    def test_explicit_password(self):
        assert DatabaseConfig(password=SecretStr("x")).password.get_secret_value() == "x"

    def test_pool_config_resolves_env(self, db_env):
        assert PoolConfig().database.password.get_secret_value() == "pw"


class TestLimitsAndRetry:
    """Cross-field validation."""

    def test_max_below_min(self):
        with pytest.raises(ValidationError, match="max_size"):
            PoolLimitsConfig(min_size=5, max_size=2)

    def test_max_delay_below_initial(self):
        with pytest.raises(ValidationError, match="max_delay"):
            PoolRetryConfig(initial_delay=5.0, max_delay=1.0)

    def test_exponential_delays(self):
        pool = Pool(make_config())
        assert [pool._retry_delay(i) for i in range(5)] == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.0])

    def test_linear_delays(self):
        pool = Pool(make_config(exponential_backoff=False))
        assert [pool._retry_delay(i) for i in range(3)] == pytest.approx([0.1, 0.2, 0.3])


# ============================================================================
# Connection
# ============================================================================


class TestConnect:
    """connect() / close()."""

    async def test_connect(self, mock_asyncpg_pool):
        pool = Pool(make_config())
        with patch("asyncpg.create_pool", AsyncMock(return_value=mock_asyncpg_pool)) as create:
            await pool.connect()
            await pool.connect()

        assert pool.is_connected
        create.assert_awaited_once()
        kwargs = create.await_args.kwargs
        assert kwargs["password"] == "pw"
        assert kwargs["server_settings"] == {"application_name": "phoenixd_dashboard"}

    async def test_retry_then_success(self, mock_asyncpg_pool):
        pool = Pool(make_config(max_attempts=3))
        create = AsyncMock(side_effect=[OSError("refused"), mock_asyncpg_pool])
        with (
            patch("asyncpg.create_pool", create),
            patch("asyncio.sleep", AsyncMock()) as sleep,
        ):
            await pool.connect()

        assert pool.is_connected
        sleep.assert_awaited_once_with(0.1)

    async def test_all_attempts_fail(self):
        pool = Pool(make_config(max_attempts=2))
        with (
            patch("asyncpg.create_pool", AsyncMock(side_effect=OSError("refused"))),
            patch("asyncio.sleep", AsyncMock()),
            pytest.raises(ConnectionError, match="after 2 attempts"),
        ):
            await pool.connect()
        assert not pool.is_connected

    async def test_close_idempotent(self, mock_asyncpg_pool):
        pool = Pool(make_config())
        with patch("asyncpg.create_pool", AsyncMock(return_value=mock_asyncpg_pool)):
            async with pool:
                assert pool.is_connected
        await pool.close()

        mock_asyncpg_pool.close.assert_awaited_once()
        assert not pool.is_connected


# ============================================================================
# Queries
# ============================================================================


class TestQueries:
    """fetch() / execute() with connection-level retry."""

    async def _connected(self, mock_asyncpg_pool, **retry) -> Pool:
        pool = Pool(make_config(**retry))
        with patch("asyncpg.create_pool", AsyncMock(return_value=mock_asyncpg_pool)):
            await pool.connect()
        return pool

    async def test_not_connected(self):
        with pytest.raises(RuntimeError, match="not connected"):
            await Pool(make_config()).fetch("SELECT 1")

    async def test_execute(self, mock_asyncpg_pool, mock_connection):
        pool = await self._connected(mock_asyncpg_pool)
        mock_connection.execute.return_value = "CREATE TABLE"

        assert await pool.execute("CREATE TABLE t ()", timeout=5.0) == "CREATE TABLE"
        mock_connection.execute.assert_awaited_once_with("CREATE TABLE t ()", timeout=5.0)

    async def test_fetch_args(self, mock_asyncpg_pool, mock_connection):
        pool = await self._connected(mock_asyncpg_pool)
        mock_connection.fetch.return_value = [{"n": 1}]

        assert await pool.fetch("SELECT $1", 1) == [{"n": 1}]
        mock_connection.fetch.assert_awaited_once_with("SELECT $1", 1, timeout=None)

    async def test_retry_on_interface_error(self, mock_asyncpg_pool, mock_connection):
        pool = await self._connected(mock_asyncpg_pool, max_attempts=3)
        mock_connection.fetch.side_effect = [asyncpg.InterfaceError("broken"), [{"n": 2}]]

        with patch("asyncio.sleep", AsyncMock()):
            assert await pool.fetch("SELECT 2") == [{"n": 2}]
        assert mock_connection.fetch.await_count == 2

    async def test_retry_exhausted(self, mock_asyncpg_pool, mock_connection):
        pool = await self._connected(mock_asyncpg_pool, max_attempts=2)
        mock_connection.execute.side_effect = asyncpg.InterfaceError("broken")

        with patch("asyncio.sleep", AsyncMock()), pytest.raises(
            ConnectionError, match="execute failed after 2 attempts"
        ):
            await pool.execute("SELECT 1")

    async def test_postgres_error_not_retried(self, mock_asyncpg_pool, mock_connection):
        pool = await self._connected(mock_asyncpg_pool)
        mock_connection.fetch.side_effect = asyncpg.PostgresError("syntax")

        with pytest.raises(asyncpg.PostgresError):
            await pool.fetch("SELEC 1")
        assert mock_connection.fetch.await_count == 1

    def test_repr(self):
        assert repr(Pool(make_config())) == (
            "Pool(host=localhost, database=phoenixd_dashboard, connected=False)"
        )
