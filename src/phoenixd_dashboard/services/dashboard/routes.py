"""REST pass-through routes for the dashboard.

Each route converts the browser's JSON (or form) body and query strings into
one [PhoenixdClient][phoenixd_dashboard.phoenixd.client.PhoenixdClient] call:
numeric strings become ints, ``all`` is true only for the string ``"true"``.
Any failure, from a bad number to an
[UpstreamError][phoenixd_dashboard.core.exceptions.UpstreamError], is answered
with HTTP 500 and ``{"error": <message>}``. Nothing is retried.

Routers:
    ``/api/node``      node info, balance, channels, liquidity fees, relay status
    ``/api/payments``  incoming/outgoing history and the payment audit log
    ``/api/phoenixd``  invoices, offers, payments, decode and export
    ``/api/lnurl``     LNURL pay, withdraw and auth
"""

from __future__ import annotations

import asyncio
import functools
import json
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import parse_qsl

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from phoenixd_dashboard.core.logger import Logger
from phoenixd_dashboard.core.store import PaymentStore  # noqa: TC001 (FastAPI runtime)
from phoenixd_dashboard.phoenixd.client import PhoenixdClient  # noqa: TC001 (FastAPI runtime)


DEFAULT_INVOICE_DESCRIPTION = "Phoenixd Dashboard Payment"

_logger = Logger("routes")

Handler = Callable[..., Awaitable[Any]]
StatusProvider = Callable[[], dict[str, Any]]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _int(value: Any) -> int | None:
    """Parse an optional integer field; ``None`` and ``""`` mean absent."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"invalid integer: {value!r}")
    return int(value)


def _flag(value: Any) -> bool:
    return value is True or value == "true"


async def _read_body(request: Request) -> dict[str, Any]:
    """Decode a JSON or ``application/x-www-form-urlencoded`` body."""
    raw = await request.body()
    if not raw:
        return {}
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/x-www-form-urlencoded"):
        return dict(parse_qsl(raw.decode("utf-8"), keep_blank_values=True))
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("request body must be a JSON object")
    return data


def _passthrough(handler: Handler) -> Handler:
    """Turn a handler's result into JSON and any exception into a 500."""

    @functools.wraps(handler)
    async def wrapper(*args: Any, **kwargs: Any) -> Response:
        try:
            result = await handler(*args, **kwargs)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # REST error boundary: every failure becomes a 500
            _logger.warning("passthrough_failed", handler=handler.__name__, error=str(e))
            return JSONResponse({"error": str(e)}, status_code=500)
        if isinstance(result, Response):
            return result
        return JSONResponse(result)

    return wrapper


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------


def node_router(phoenixd: PhoenixdClient, status: StatusProvider) -> APIRouter:
    router = APIRouter(prefix="/api/node")

    @router.get("/info")
    @_passthrough
    async def get_info() -> Any:
        return await phoenixd.get_info()

    @router.get("/balance")
    @_passthrough
    async def get_balance() -> Any:
        return await phoenixd.get_balance()

    @router.get("/channels")
    @_passthrough
    async def list_channels() -> Any:
        return await phoenixd.list_channels()

    @router.post("/channels/close")
    @_passthrough
    async def close_channel(request: Request) -> Any:
        body = await _read_body(request)
        tx_id = await phoenixd.close_channel(
            channel_id=body.get("channelId"),
            address=body.get("address"),
            feerate_sat_byte=_int(body.get("feerateSatByte")),
        )
        return {"txId": tx_id}

    @router.get("/estimatefees")
    @_passthrough
    async def estimate_fees(request: Request) -> Any:
        amount = request.query_params.get("amountSat")
        if not amount:
            return JSONResponse({"error": "amountSat is required"}, status_code=400)
        return await phoenixd.estimate_liquidity_fees(_int(amount))

    @router.get("/status")
    async def relay_status() -> dict[str, Any]:
        return status()

    return router


def payments_router(phoenixd: PhoenixdClient, store: PaymentStore | None) -> APIRouter:
    router = APIRouter(prefix="/api/payments")

    @router.get("/incoming")
    @_passthrough
    async def list_incoming(request: Request) -> Any:
        q = request.query_params
        return await phoenixd.list_incoming_payments(
            from_=_int(q.get("from")),
            to=_int(q.get("to")),
            limit=_int(q.get("limit")),
            offset=_int(q.get("offset")),
            all_=_flag(q.get("all")),
            external_id=q.get("externalId"),
        )

    @router.get("/incoming/{payment_hash}")
    @_passthrough
    async def get_incoming(payment_hash: str) -> Any:
        return await phoenixd.get_incoming_payment(payment_hash)

    @router.get("/outgoing")
    @_passthrough
    async def list_outgoing(request: Request) -> Any:
        q = request.query_params
        return await phoenixd.list_outgoing_payments(
            from_=_int(q.get("from")),
            to=_int(q.get("to")),
            limit=_int(q.get("limit")),
            offset=_int(q.get("offset")),
            all_=_flag(q.get("all")),
        )

    @router.get("/outgoing/{payment_id}")
    @_passthrough
    async def get_outgoing(payment_id: str) -> Any:
        return await phoenixd.get_outgoing_payment(payment_id)

    @router.get("/outgoingbyhash/{payment_hash}")
    @_passthrough
    async def get_outgoing_by_hash(payment_hash: str) -> Any:
        return await phoenixd.get_outgoing_payment_by_hash(payment_hash)

    @router.get("/log")
    @_passthrough
    async def payment_log(request: Request) -> Any:
        if store is None:
            return JSONResponse({"error": "payment log is disabled"}, status_code=404)
        q = request.query_params
        limit = _int(q.get("limit"))
        offset = _int(q.get("offset"))
        records = await store.list_payment_logs(
            limit=50 if limit is None else limit,
            offset=0 if offset is None else offset,
        )
        return [record.to_dict() for record in records]

    return router


def phoenixd_router(phoenixd: PhoenixdClient) -> APIRouter:
    router = APIRouter(prefix="/api/phoenixd")

    @router.post("/createinvoice")
    @_passthrough
    async def create_invoice(request: Request) -> Any:
        body = await _read_body(request)
        return await phoenixd.create_invoice(
            description=body.get("description") or DEFAULT_INVOICE_DESCRIPTION,
            amount_sat=_int(body.get("amountSat")),
            expiry_seconds=_int(body.get("expirySeconds")),
            external_id=body.get("externalId"),
            webhook_url=body.get("webhookUrl"),
        )

    @router.post("/createoffer")
    @_passthrough
    async def create_offer(request: Request) -> Any:
        body = await _read_body(request)
        return await phoenixd.create_offer(
            description=body.get("description"),
            amount_sat=_int(body.get("amountSat")),
        )

    @router.get("/getlnaddress")
    @_passthrough
    async def get_ln_address() -> Any:
        return {"address": await phoenixd.get_ln_address()}

    @router.post("/payinvoice")
    @_passthrough
    async def pay_invoice(request: Request) -> Any:
        body = await _read_body(request)
        return await phoenixd.pay_invoice(
            invoice=body.get("invoice"),
            amount_sat=_int(body.get("amountSat")),
        )

    @router.post("/payoffer")
    @_passthrough
    async def pay_offer(request: Request) -> Any:
        body = await _read_body(request)
        return await phoenixd.pay_offer(
            offer=body.get("offer"),
            amount_sat=_int(body.get("amountSat")),
            message=body.get("message"),
        )

    @router.post("/paylnaddress")
    @_passthrough
    async def pay_ln_address(request: Request) -> Any:
        body = await _read_body(request)
        return await phoenixd.pay_ln_address(
            address=body.get("address"),
            amount_sat=_int(body.get("amountSat")),
            message=body.get("message"),
        )

    @router.post("/sendtoaddress")
    @_passthrough
    async def send_to_address(request: Request) -> Any:
        body = await _read_body(request)
        tx_id = await phoenixd.send_to_address(
            address=body.get("address"),
            amount_sat=_int(body.get("amountSat")),
            feerate_sat_byte=_int(body.get("feerateSatByte")),
        )
        return {"txId": tx_id}

    @router.post("/bumpfee")
    @_passthrough
    async def bump_fee(request: Request) -> Any:
        body = await _read_body(request)
        return {"txId": await phoenixd.bump_fee(_int(body.get("feerateSatByte")))}

    @router.post("/decodeinvoice")
    @_passthrough
    async def decode_invoice(request: Request) -> Any:
        body = await _read_body(request)
        return await phoenixd.decode_invoice(body.get("invoice"))

    @router.post("/decodeoffer")
    @_passthrough
    async def decode_offer(request: Request) -> Any:
        body = await _read_body(request)
        return await phoenixd.decode_offer(body.get("offer"))

    @router.post("/export")
    @_passthrough
    async def export_csv(request: Request) -> Any:
        body = await _read_body(request)
        csv = await phoenixd.export_csv(_int(body.get("from")), _int(body.get("to")))
        return {"message": csv}

    return router


def lnurl_router(phoenixd: PhoenixdClient) -> APIRouter:
    router = APIRouter(prefix="/api/lnurl")

    @router.post("/pay")
    @_passthrough
    async def lnurl_pay(request: Request) -> Any:
        body = await _read_body(request)
        return await phoenixd.lnurl_pay(
            body.get("lnurl"),
            _int(body.get("amountSat")),
            body.get("message"),
        )

    @router.post("/withdraw")
    @_passthrough
    async def lnurl_withdraw(request: Request) -> Any:
        body = await _read_body(request)
        return await phoenixd.lnurl_withdraw(body.get("lnurl"))

    @router.post("/auth")
    @_passthrough
    async def lnurl_auth(request: Request) -> Any:
        body = await _read_body(request)
        return {"message": await phoenixd.lnurl_auth(body.get("lnurl"))}

    return router


def include_routes(
    app: FastAPI,
    phoenixd: PhoenixdClient,
    *,
    status: StatusProvider,
    store: PaymentStore | None = None,
) -> None:
    """Mount all pass-through routers on ``app``."""
    app.include_router(node_router(phoenixd, status))
    app.include_router(payments_router(phoenixd, store))
    app.include_router(phoenixd_router(phoenixd))
    app.include_router(lnurl_router(phoenixd))
