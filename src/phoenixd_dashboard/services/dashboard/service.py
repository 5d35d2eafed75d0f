"""Dashboard service: phoenixd event relay, REST pass-through and WebSocket hub.

This is the composition root. It owns the
[PhoenixdClient][phoenixd_dashboard.phoenixd.client.PhoenixdClient], the
[UpstreamAdapter][phoenixd_dashboard.relay.upstream.UpstreamAdapter] and its
[ReconnectSupervisor][phoenixd_dashboard.relay.supervisor.ReconnectSupervisor],
the [BroadcastHub][phoenixd_dashboard.relay.hub.BroadcastHub], the optional
payment audit log and the HTTP server. Nothing is a module global; every
resource is opened in ``__aenter__`` and released in ``__aexit__``.

The HTTP server runs as a background ``asyncio.Task`` alongside the standard
``run_forever()`` cycle. Each ``run()`` cycle logs relay statistics and
updates Prometheus metrics.

See Also:
    [routes][phoenixd_dashboard.services.dashboard.routes]: The REST
        pass-through routers mounted on the app.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING, Any, ClassVar

import uvicorn
from fastapi import FastAPI, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.websockets import WebSocketState

from phoenixd_dashboard.core.base_service import BaseService
from phoenixd_dashboard.core.store import PaymentStore
from phoenixd_dashboard.models.constants import ServiceName
from phoenixd_dashboard.phoenixd.client import PhoenixdClient
from phoenixd_dashboard.relay.hub import BroadcastHub
from phoenixd_dashboard.relay.sink import PaymentLogSink
from phoenixd_dashboard.relay.supervisor import ReconnectSupervisor, SleepFn
from phoenixd_dashboard.relay.upstream import UpstreamAdapter

from .configs import DashboardConfig
from .routes import include_routes


if TYPE_CHECKING:
    from types import TracebackType

_HTTP_ERROR_THRESHOLD = 400


class WebSocketSubscriber:
    """Hub [Subscriber][phoenixd_dashboard.relay.hub.Subscriber] over a
    Starlette ``WebSocket``.
    """

    __slots__ = ("_ws",)

    def __init__(self, ws: WebSocket) -> None:
        self._ws = ws

    @property
    def is_open(self) -> bool:
        return (
            self._ws.client_state is WebSocketState.CONNECTED
            and self._ws.application_state is WebSocketState.CONNECTED
        )

    async def send_text(self, data: str) -> None:
        await self._ws.send_text(data)


class Dashboard(BaseService[DashboardConfig]):
    """Backend for the phoenixd web dashboard.

    Lifecycle:
        1. ``__aenter__``: open the phoenixd client and the audit log, start
           the upstream supervisor, build the FastAPI app, start uvicorn.
        2. ``run()``: report relay statistics and Prometheus metrics; raise
           if the HTTP server died.
        3. ``__aexit__``: stop the server, shut the supervisor down, drain the
           audit log, close the client.

    Note:
        The ``/ws`` endpoint is unauthenticated, as is the REST API; put the
        dashboard behind a reverse proxy when exposing it.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.DASHBOARD
    CONFIG_CLASS: ClassVar[type[DashboardConfig]] = DashboardConfig

    def __init__(
        self,
        config: DashboardConfig | None = None,
        *,
        phoenixd: PhoenixdClient | None = None,
        upstream: UpstreamAdapter | None = None,
        store: PaymentStore | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        super().__init__(config)
        cfg = self._config

        self._phoenixd = phoenixd or PhoenixdClient(cfg.phoenixd)
        self._hub = BroadcastHub(
            send_timeout=cfg.hub.send_timeout, outbox_size=cfg.hub.outbox_size
        )
        self._upstream = upstream or UpstreamAdapter(cfg.phoenixd)
        self._supervisor = ReconnectSupervisor(
            self._upstream,
            cfg.reconnect,
            name="upstream",
            on_connect=self._on_upstream_connect,
            on_disconnect=self._on_upstream_disconnect,
            sleep=sleep,
        )
        self._upstream.add_listener(self._hub.on_event)

        self._store: PaymentStore | None = None
        self._sink: PaymentLogSink | None = None
        if cfg.payment_log.enabled:
            self._store = store or PaymentStore(cfg.payment_log.store)
            self._sink = PaymentLogSink(
                self._store,
                queue_size=cfg.payment_log.queue_size,
                batch_size=cfg.payment_log.batch_size,
            )
            self._upstream.add_listener(self._sink.submit)

        self._server_task: asyncio.Task[None] | None = None
        self._requests_total = 0
        self._requests_failed = 0
        self._reported: dict[str, int] = {}

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def hub(self) -> BroadcastHub:
        return self._hub

    @property
    def upstream(self) -> UpstreamAdapter:
        return self._upstream

    @property
    def supervisor(self) -> ReconnectSupervisor:
        return self._supervisor

    @property
    def phoenixd(self) -> PhoenixdClient:
        return self._phoenixd

    @property
    def sink(self) -> PaymentLogSink | None:
        return self._sink

    def relay_status(self) -> dict[str, Any]:
        """Snapshot served by ``GET /api/node/status``."""
        return {
            "upstreamConnected": self._supervisor.is_connected,
            "upstreamState": str(self._supervisor.state),
            "reconnectAttempts": self._supervisor.attempts,
            "subscribers": self._hub.subscriber_count,
            "eventsRelayed": self._hub.events_broadcast,
            "paymentLog": self._sink is not None,
        }

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Dashboard:
        await super().__aenter__()
        await self._phoenixd.open()

        if self._store is not None and self._sink is not None:
            await self._store.connect()
            await self._store.create_schema()
            self._sink.start()
            self._logger.info("payment_log_enabled")

        self._supervisor.start()
        self._logger.info("upstream_supervisor_started", url=self._upstream.url)

        app = self._build_app()
        self._server_task = asyncio.create_task(self._run_server(app))
        self._logger.info(
            "http_server_started",
            host=self._config.host,
            port=self._config.port,
        )
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        if self._server_task is not None:
            self._server_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._server_task
            self._server_task = None
        self._logger.info("http_server_stopped")

        await self._supervisor.shutdown()
        await self._hub.close()
        if self._sink is not None:
            await self._sink.stop()
        if self._store is not None:
            await self._store.close()
        await self._phoenixd.close()
        await super().__aexit__(_exc_type, _exc_val, _exc_tb)

    async def run(self) -> None:
        """Log relay stats and update Prometheus metrics."""
        if self._server_task is not None and self._server_task.done():
            exc = self._server_task.exception() if not self._server_task.cancelled() else None
            self._logger.error("http_server_crashed", error=str(exc) if exc else "cancelled")
            raise RuntimeError("HTTP server task has stopped unexpectedly") from exc

        total = self._requests_total
        failed = self._requests_failed
        self._requests_total = 0
        self._requests_failed = 0

        counters = {
            "events_relayed": self._hub.events_broadcast,
            "frames_discarded": self._upstream.frames_discarded,
            "subscribers_dropped": self._hub.subscribers_dropped,
            "payments_logged": self._sink.records_logged if self._sink else 0,
        }
        for name, value in counters.items():
            self.inc_counter(name, value - self._reported.get(name, 0))
        self._reported = counters

        self.inc_counter("requests_total", total)
        self.inc_counter("requests_failed", failed)
        self.set_gauge("upstream_connected", int(self._supervisor.is_connected))
        self.set_gauge("subscribers", self._hub.subscriber_count)
        self.set_gauge("reconnect_attempts", self._supervisor.attempts)

        self._logger.info(
            "cycle_stats",
            upstream=self._supervisor.state,
            subscribers=self._hub.subscriber_count,
            reconnect_attempts=self._supervisor.attempts,
            requests_total=total,
            requests_failed=failed,
            **counters,
        )

    # -------------------------------------------------------------------------
    # Upstream callbacks
    # -------------------------------------------------------------------------

    def _on_upstream_connect(self) -> None:
        self.set_gauge("upstream_connected", 1)

    def _on_upstream_disconnect(self) -> None:
        self.set_gauge("upstream_connected", 0)

    # -------------------------------------------------------------------------
    # HTTP / WebSocket
    # -------------------------------------------------------------------------

    def _build_app(self) -> FastAPI:
        """Construct the FastAPI application: REST routes, ``/health``, ``/ws``."""
        app = FastAPI(title="Phoenixd Dashboard API")

        if self._config.cors_origins:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=self._config.cors_origins,
                allow_credentials=True,
                allow_methods=["GET", "POST"],
                allow_headers=["*"],
            )

        @app.middleware("http")
        async def log_requests(request: Request, call_next: Any) -> Response:
            start = time.monotonic()
            try:
                response: Response = await call_next(request)
            except Exception as exc:  # HTTP request error boundary
                self._logger.error("unhandled_error", error=str(exc), path=request.url.path)
                response = JSONResponse({"error": "Internal server error"}, status_code=500)
            duration_ms = (time.monotonic() - start) * 1000
            self._requests_total += 1
            if response.status_code >= _HTTP_ERROR_THRESHOLD:
                self._requests_failed += 1
                self._logger.warning(
                    "request_failed",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=round(duration_ms, 1),
                )
            else:
                self._logger.debug(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=round(duration_ms, 1),
                )
            return response

        @app.get("/health")
        async def health() -> dict[str, str]:
            return {"status": "ok"}

        include_routes(app, self._phoenixd, status=self.relay_status, store=self._store)

        @app.websocket(self._config.hub.path)
        async def subscribe(ws: WebSocket) -> None:
            await self._serve_subscriber(ws)

        return app

    async def _serve_subscriber(self, ws: WebSocket) -> None:
        """Hold one browser connection registered with the hub until it closes.

        Inbound messages are read and ignored; reading is what notices the
        close.
        """
        await ws.accept()
        subscriber = WebSocketSubscriber(ws)
        self._hub.register(subscriber)
        try:
            while True:
                await ws.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            self._hub.unregister(subscriber)

    async def _run_server(self, app: FastAPI) -> None:
        """Run uvicorn as an asyncio server."""
        config = uvicorn.Config(
            app,
            host=self._config.host,
            port=self._config.port,
            log_level="warning",
            access_log=False,
        )
        server = uvicorn.Server(config)
        await server.serve()
