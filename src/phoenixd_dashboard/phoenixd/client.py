"""
Async client for the phoenixd HTTP API.

One coroutine per phoenixd endpoint, each a single authenticated round trip:
HTTP Basic with an empty username, GET filters as query parameters, POST
bodies form-encoded. JSON responses are decoded; anything else (transaction
ids, Lightning addresses, CSV exports) is returned as text. A non-2xx answer
raises [UpstreamError][phoenixd_dashboard.core.exceptions.UpstreamError];
nothing is retried.

Examples:
    ```python
    async with PhoenixdClient(PhoenixdConfig()) as phoenixd:
        balance = await phoenixd.get_balance()
        invoice = await phoenixd.create_invoice(description="coffee", amount_sat=2100)
    ```
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import aiohttp

from phoenixd_dashboard.core.exceptions import UpstreamError
from phoenixd_dashboard.core.logger import Logger
from phoenixd_dashboard.utils.http import read_bounded_json, read_bounded_text
from phoenixd_dashboard.utils.transport import basic_auth

from .configs import PhoenixdConfig


def _clean(params: Mapping[str, Any]) -> dict[str, str]:
    """Drop ``None`` values and render the rest the way phoenixd parses them."""
    result: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            result[key] = "true" if value else "false"
        else:
            result[key] = str(value)
    return result


class PhoenixdClient:
    """Thin async wrapper over the phoenixd REST endpoints.

    The client owns one ``aiohttp.ClientSession``, opened by
    [open()][phoenixd_dashboard.phoenixd.client.PhoenixdClient.open] (or
    ``async with``) and released by ``close()``.
    """

    def __init__(self, config: PhoenixdConfig | None = None) -> None:
        self._config = config or PhoenixdConfig()
        self._session: aiohttp.ClientSession | None = None
        self._logger = Logger("phoenixd")

    @property
    def config(self) -> PhoenixdConfig:
        return self._config

    async def open(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                auth=basic_auth(self._config.password.get_secret_value()),
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout),
            )

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> PhoenixdClient:
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> Any:
        """Perform one call and decode the body.

        Raises:
            UpstreamError: On a non-2xx status.
            aiohttp.ClientError: On transport failure.
            TimeoutError: When ``request_timeout`` elapses.
        """
        await self.open()
        assert self._session is not None

        url = f"{self._config.url}{path}"
        kwargs: dict[str, Any] = {}
        if params:
            kwargs["params"] = _clean(params)
        if data is not None:
            # aiohttp sends a plain dict as application/x-www-form-urlencoded
            kwargs["data"] = _clean(data)

        max_size = self._config.max_response_size
        async with self._session.request(method, url, **kwargs) as response:
            if not 200 <= response.status < 300:
                message = (await read_bounded_text(response, max_size)) or response.reason or ""
                self._logger.warning(
                    "phoenixd_request_failed",
                    method=method,
                    path=path,
                    status=response.status,
                )
                raise UpstreamError(response.status, message)
            if response.content_type == "application/json":
                return await read_bounded_json(response, max_size)
            return await read_bounded_text(response, max_size)

    async def _get(self, path: str, **params: Any) -> Any:
        return await self._request("GET", path, params=params)

    async def _post(self, path: str, **data: Any) -> Any:
        return await self._request("POST", path, data=data)

    # -------------------------------------------------------------------------
    # Node
    # -------------------------------------------------------------------------

    async def get_info(self) -> Any:
        return await self._get("/getinfo")

    async def get_balance(self) -> Any:
        return await self._get("/getbalance")

    async def list_channels(self) -> Any:
        return await self._get("/listchannels")

    async def close_channel(self, channel_id: str, address: str, feerate_sat_byte: int) -> str:
        """Close a channel, sending the funds to ``address``. Returns the txid."""
        result: str = await self._post(
            "/closechannel",
            channelId=channel_id,
            address=address,
            feerateSatByte=feerate_sat_byte,
        )
        return result

    async def estimate_liquidity_fees(self, amount_sat: int) -> Any:
        return await self._get("/estimateliquidityfees", amountSat=amount_sat)

    # -------------------------------------------------------------------------
    # Receive
    # -------------------------------------------------------------------------

    async def create_invoice(
        self,
        description: str,
        amount_sat: int | None = None,
        expiry_seconds: int | None = None,
        external_id: str | None = None,
        webhook_url: str | None = None,
    ) -> Any:
        """Create a BOLT11 invoice; omit ``amount_sat`` for any-amount."""
        return await self._post(
            "/createinvoice",
            description=description,
            amountSat=amount_sat,
            expirySeconds=expiry_seconds,
            externalId=external_id,
            webhookUrl=webhook_url,
        )

    async def create_offer(
        self,
        description: str | None = None,
        amount_sat: int | None = None,
    ) -> Any:
        """Create a reusable BOLT12 offer."""
        return await self._post("/createoffer", description=description, amountSat=amount_sat)

    async def get_ln_address(self) -> str:
        result: str = await self._get("/getlnaddress")
        return result

    # -------------------------------------------------------------------------
    # Send
    # -------------------------------------------------------------------------

    async def pay_invoice(self, invoice: str, amount_sat: int | None = None) -> Any:
        return await self._post("/payinvoice", invoice=invoice, amountSat=amount_sat)

    async def pay_offer(
        self,
        offer: str,
        amount_sat: int,
        message: str | None = None,
    ) -> Any:
        return await self._post("/payoffer", offer=offer, amountSat=amount_sat, message=message)

    async def pay_ln_address(
        self,
        address: str,
        amount_sat: int,
        message: str | None = None,
    ) -> Any:
        return await self._post(
            "/paylnaddress", address=address, amountSat=amount_sat, message=message
        )

    async def send_to_address(self, address: str, amount_sat: int, feerate_sat_byte: int) -> str:
        """On-chain send. Returns the txid."""
        result: str = await self._post(
            "/sendtoaddress",
            address=address,
            amountSat=amount_sat,
            feerateSatByte=feerate_sat_byte,
        )
        return result

    async def bump_fee(self, feerate_sat_byte: int) -> str:
        """CPFP the pending on-chain transactions. Returns the txid."""
        result: str = await self._post("/bumpfee", feerateSatByte=feerate_sat_byte)
        return result

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    async def list_incoming_payments(
        self,
        from_: int | None = None,
        to: int | None = None,
        limit: int | None = None,
        offset: int | None = None,
        all_: bool = False,
        external_id: str | None = None,
    ) -> Any:
        """List incoming payments; ``all_`` includes unpaid invoices."""
        return await self._get(
            "/payments/incoming",
            **{
                "from": from_,
                "to": to,
                "limit": limit,
                "offset": offset,
                "all": all_,
                "externalId": external_id,
            },
        )

    async def get_incoming_payment(self, payment_hash: str) -> Any:
        return await self._get(f"/payments/incoming/{payment_hash}")

    async def list_outgoing_payments(
        self,
        from_: int | None = None,
        to: int | None = None,
        limit: int | None = None,
        offset: int | None = None,
        all_: bool = False,
    ) -> Any:
        return await self._get(
            "/payments/outgoing",
            **{"from": from_, "to": to, "limit": limit, "offset": offset, "all": all_},
        )

    async def get_outgoing_payment(self, payment_id: str) -> Any:
        return await self._get(f"/payments/outgoing/{payment_id}")

    async def get_outgoing_payment_by_hash(self, payment_hash: str) -> Any:
        return await self._get(f"/payments/outgoingbyhash/{payment_hash}")

    async def export_csv(self, from_: int | None = None, to: int | None = None) -> str:
        """Export payments between two millisecond timestamps as CSV text."""
        result: str = await self._post("/export", **{"from": from_, "to": to})
        return result

    # -------------------------------------------------------------------------
    # Decode
    # -------------------------------------------------------------------------

    async def decode_invoice(self, invoice: str) -> Any:
        return await self._post("/decodeinvoice", invoice=invoice)

    async def decode_offer(self, offer: str) -> Any:
        return await self._post("/decodeoffer", offer=offer)

    # -------------------------------------------------------------------------
    # LNURL
    # -------------------------------------------------------------------------

    async def lnurl_pay(self, lnurl: str, amount_sat: int, message: str | None = None) -> Any:
        return await self._post("/lnurlpay", lnurl=lnurl, amountSat=amount_sat, message=message)

    async def lnurl_withdraw(self, lnurl: str) -> Any:
        return await self._post("/lnurlwithdraw", lnurl=lnurl)

    async def lnurl_auth(self, lnurl: str) -> str:
        result: str = await self._post("/lnurlauth", lnurl=lnurl)
        return result
