"""
Unit tests for services.dashboard.routes module.

Tests:
- Query and body conversion into PhoenixdClient arguments
- JSON and form-encoded bodies
- UpstreamError and bad numbers answered with 500 {"error": ...}
- /api/node/status and /api/payments/log
"""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from phoenixd_dashboard.core.exceptions import UpstreamError
from phoenixd_dashboard.core.store import PaymentStore
from phoenixd_dashboard.models import PaymentDirection, PaymentLogRecord
from phoenixd_dashboard.phoenixd.client import PhoenixdClient
from phoenixd_dashboard.services.dashboard.routes import (
    DEFAULT_INVOICE_DESCRIPTION,
    include_routes,
)


STATUS = {"upstreamConnected": True, "subscribers": 2}


@pytest.fixture
def phoenixd() -> MagicMock:
    return MagicMock(spec=PhoenixdClient)


@pytest.fixture
def store() -> MagicMock:
    return MagicMock(spec=PaymentStore)


def make_client(phoenixd: MagicMock, store: MagicMock | None = None) -> TestClient:
    app = FastAPI()
    include_routes(app, phoenixd, status=lambda: STATUS, store=store)
    return TestClient(app)


@pytest.fixture
def client(phoenixd) -> TestClient:
    return make_client(phoenixd)


# ============================================================================
# Node
# ============================================================================


class TestNodeRoutes:
    """/api/node/*"""

    def test_balance(self, client, phoenixd):
        phoenixd.get_balance.return_value = {"balanceSat": 21000, "feeCreditSat": 5}
        resp = client.get("/api/node/balance")
        assert resp.status_code == 200
        assert resp.json() == {"balanceSat": 21000, "feeCreditSat": 5}

    def test_info(self, client, phoenixd):
        phoenixd.get_info.return_value = {"nodeId": "02ab", "channels": []}
        assert client.get("/api/node/info").json()["nodeId"] == "02ab"

    def test_channels(self, client, phoenixd):
        phoenixd.list_channels.return_value = [{"channelId": "c1"}]
        assert client.get("/api/node/channels").json() == [{"channelId": "c1"}]

    def test_close_channel(self, client, phoenixd):
        phoenixd.close_channel.return_value = "txid"
        resp = client.post(
            "/api/node/channels/close",
            json={"channelId": "c1", "address": "bc1q", "feerateSatByte": "4"},
        )
        assert resp.json() == {"txId": "txid"}
        phoenixd.close_channel.assert_awaited_once_with(
            channel_id="c1", address="bc1q", feerate_sat_byte=4
        )

    def test_estimate_fees(self, client, phoenixd):
        phoenixd.estimate_liquidity_fees.return_value = {"miningFeeSat": 300}
        resp = client.get("/api/node/estimatefees", params={"amountSat": "100000"})
        assert resp.json() == {"miningFeeSat": 300}
        phoenixd.estimate_liquidity_fees.assert_awaited_once_with(100000)

    def test_estimate_fees_requires_amount(self, client, phoenixd):
        resp = client.get("/api/node/estimatefees")
        assert resp.status_code == 400
        assert resp.json() == {"error": "amountSat is required"}
        phoenixd.estimate_liquidity_fees.assert_not_awaited()

    def test_status(self, client):
        assert client.get("/api/node/status").json() == STATUS


# ============================================================================
# Errors
# ============================================================================


class TestErrorMapping:
    """Every failure becomes 500 with an error message."""

    def test_upstream_error(self, client, phoenixd):
        phoenixd.get_balance.side_effect = UpstreamError(401, "Unauthorized")
        resp = client.get("/api/node/balance")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Phoenixd API error: 401 - Unauthorized"}

    def test_transport_error(self, client, phoenixd):
        phoenixd.list_channels.side_effect = ConnectionRefusedError("refused")
        resp = client.get("/api/node/channels")
        assert resp.status_code == 500
        assert "refused" in resp.json()["error"]

    def test_bad_number(self, client, phoenixd):
        resp = client.post("/api/phoenixd/bumpfee", json={"feerateSatByte": "fast"})
        assert resp.status_code == 500
        assert "error" in resp.json()
        phoenixd.bump_fee.assert_not_awaited()

    def test_body_not_object(self, client, phoenixd):
        resp = client.post("/api/phoenixd/decodeinvoice", json=["lnbc1"])
        assert resp.status_code == 500
        phoenixd.decode_invoice.assert_not_awaited()


# ============================================================================
# Payments
# ============================================================================


class TestPaymentRoutes:
    """/api/payments/*"""

    def test_list_incoming_converts_query(self, client, phoenixd):
        phoenixd.list_incoming_payments.return_value = []
        resp = client.get(
            "/api/payments/incoming",
            params={"from": "10", "limit": "5", "all": "true", "externalId": "o1"},
        )
        assert resp.json() == []
        phoenixd.list_incoming_payments.assert_awaited_once_with(
            from_=10, to=None, limit=5, offset=None, all_=True, external_id="o1"
        )

    def test_all_only_true_string(self, client, phoenixd):
        phoenixd.list_outgoing_payments.return_value = []
        client.get("/api/payments/outgoing", params={"all": "yes"})
        assert phoenixd.list_outgoing_payments.await_args.kwargs["all_"] is False

    def test_path_parameters(self, client, phoenixd):
        phoenixd.get_incoming_payment.return_value = {"isPaid": True}
        phoenixd.get_outgoing_payment.return_value = {"sent": 1}
        phoenixd.get_outgoing_payment_by_hash.return_value = {"sent": 2}

        assert client.get("/api/payments/incoming/h1").json() == {"isPaid": True}
        assert client.get("/api/payments/outgoing/p1").json() == {"sent": 1}
        assert client.get("/api/payments/outgoingbyhash/h2").json() == {"sent": 2}

        phoenixd.get_incoming_payment.assert_awaited_once_with("h1")
        phoenixd.get_outgoing_payment.assert_awaited_once_with("p1")
        phoenixd.get_outgoing_payment_by_hash.assert_awaited_once_with("h2")

    def test_log_disabled(self, client):
        resp = client.get("/api/payments/log")
        assert resp.status_code == 404
        assert resp.json() == {"error": "payment log is disabled"}

    def test_log_lists_records(self, phoenixd, store):
        record = PaymentLogRecord(
            kind=PaymentDirection.INCOMING,
            payment_hash="a" * 64,
            amount_sat=1000,
            status="completed",
            raw_event={"type": "payment_received", "amountSat": 1000},
            created_at=datetime(2026, 1, 1, tzinfo=UTC),
        )
        store.list_payment_logs.return_value = [record]
        client = make_client(phoenixd, store)

        resp = client.get("/api/payments/log", params={"limit": "10"})

        assert resp.json() == [record.to_dict()]
        store.list_payment_logs.assert_awaited_once_with(limit=10, offset=0)

    def test_log_invalid_limit(self, phoenixd, store):
        store.list_payment_logs.side_effect = ValueError("limit must be >= 1")
        resp = make_client(phoenixd, store).get("/api/payments/log", params={"limit": "0"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "limit must be >= 1"}


# ============================================================================
# Phoenixd Actions
# ============================================================================


class TestPhoenixdRoutes:
    """/api/phoenixd/*"""

    def test_create_invoice(self, client, phoenixd):
        phoenixd.create_invoice.return_value = {"serialized": "lnbc1", "paymentHash": "h"}
        resp = client.post(
            "/api/phoenixd/createinvoice",
            json={"description": "coffee", "amountSat": 2100, "externalId": "o1"},
        )
        assert resp.json()["serialized"] == "lnbc1"
        phoenixd.create_invoice.assert_awaited_once_with(
            description="coffee",
            amount_sat=2100,
            expiry_seconds=None,
            external_id="o1",
            webhook_url=None,
        )

    def test_create_invoice_default_description(self, client, phoenixd):
        phoenixd.create_invoice.return_value = {}
        client.post("/api/phoenixd/createinvoice", json={})
        kwargs = phoenixd.create_invoice.await_args.kwargs
        assert kwargs["description"] == DEFAULT_INVOICE_DESCRIPTION
        assert kwargs["amount_sat"] is None

    def test_form_encoded_body(self, client, phoenixd):
        phoenixd.pay_invoice.return_value = {"recipientAmountSat": 10}
        resp = client.post(
            "/api/phoenixd/payinvoice",
            data={"invoice": "lnbc1", "amountSat": "10"},
        )
        assert resp.status_code == 200
        phoenixd.pay_invoice.assert_awaited_once_with(invoice="lnbc1", amount_sat=10)

    def test_ln_address_wrapped(self, client, phoenixd):
        phoenixd.get_ln_address.return_value = "user@phoenix.example"
        assert client.get("/api/phoenixd/getlnaddress").json() == {
            "address": "user@phoenix.example"
        }

    def test_bump_fee(self, client, phoenixd):
        phoenixd.bump_fee.return_value = "txid"
        resp = client.post("/api/phoenixd/bumpfee", json={"feerateSatByte": "20"})
        assert resp.json() == {"txId": "txid"}
        phoenixd.bump_fee.assert_awaited_once_with(20)

    def test_send_to_address(self, client, phoenixd):
        phoenixd.send_to_address.return_value = "txid"
        resp = client.post(
            "/api/phoenixd/sendtoaddress",
            json={"address": "bc1q", "amountSat": 5000, "feerateSatByte": 2},
        )
        assert resp.json() == {"txId": "txid"}
        phoenixd.send_to_address.assert_awaited_once_with(
            address="bc1q", amount_sat=5000, feerate_sat_byte=2
        )

    def test_pay_offer_and_address(self, client, phoenixd):
        phoenixd.pay_offer.return_value = {}
        phoenixd.pay_ln_address.return_value = {}
        client.post("/api/phoenixd/payoffer", json={"offer": "lno1", "amountSat": "5"})
        client.post("/api/phoenixd/paylnaddress", json={"address": "a@b", "amountSat": 7})
        phoenixd.pay_offer.assert_awaited_once_with(offer="lno1", amount_sat=5, message=None)
        phoenixd.pay_ln_address.assert_awaited_once_with(
            address="a@b", amount_sat=7, message=None
        )

    def test_decode(self, client, phoenixd):
        phoenixd.decode_invoice.return_value = {"amount": 1}
        phoenixd.decode_offer.return_value = {"chain": "mainnet"}
        assert client.post("/api/phoenixd/decodeinvoice", json={"invoice": "x"}).json() == {
            "amount": 1
        }
        assert client.post("/api/phoenixd/decodeoffer", json={"offer": "y"}).json() == {
            "chain": "mainnet"
        }

    def test_export(self, client, phoenixd):
        phoenixd.export_csv.return_value = "date,amount\n"
        resp = client.post("/api/phoenixd/export", json={"from": "1", "to": "2"})
        assert resp.json() == {"message": "date,amount\n"}
        phoenixd.export_csv.assert_awaited_once_with(1, 2)

    def test_create_offer(self, client, phoenixd):
        phoenixd.create_offer.return_value = "lno1"
        assert client.post("/api/phoenixd/createoffer", json={}).json() == "lno1"
        phoenixd.create_offer.assert_awaited_once_with(description=None, amount_sat=None)


# ============================================================================
# LNURL
# ============================================================================


class TestLnurlRoutes:
    """/api/lnurl/*"""

    def test_pay(self, client, phoenixd):
        phoenixd.lnurl_pay.return_value = {"paymentHash": "h"}
        client.post("/api/lnurl/pay", json={"lnurl": "lnurl1", "amountSat": "21"})
        phoenixd.lnurl_pay.assert_awaited_once_with("lnurl1", 21, None)

    def test_withdraw(self, client, phoenixd):
        phoenixd.lnurl_withdraw.return_value = {"receivedSat": 100}
        assert client.post("/api/lnurl/withdraw", json={"lnurl": "l"}).json() == {
            "receivedSat": 100
        }

    def test_auth_wrapped(self, client, phoenixd):
        phoenixd.lnurl_auth.return_value = "authentication success"
        assert client.post("/api/lnurl/auth", json={"lnurl": "l"}).json() == {
            "message": "authentication success"
        }
