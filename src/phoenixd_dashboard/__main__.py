"""CLI entry point for the dashboard services.

Services can run in one-shot mode (``--once``) or continuously with a
Prometheus metrics server.

Examples:
    ```bash
    python -m phoenixd_dashboard <service> [options]
    python -m phoenixd_dashboard dashboard
    python -m phoenixd_dashboard watcher --log-level DEBUG
    python -m phoenixd_dashboard dashboard --config config/services/dashboard.yaml
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any, NamedTuple

from phoenixd_dashboard.core import start_metrics_server
from phoenixd_dashboard.core.base_service import BaseService
from phoenixd_dashboard.core.logger import Logger, StructuredFormatter
from phoenixd_dashboard.core.yaml import load_yaml
from phoenixd_dashboard.models.constants import ServiceName
from phoenixd_dashboard.services.dashboard import Dashboard
from phoenixd_dashboard.services.watcher import Watcher


CONFIG_BASE = Path("config")


class ServiceEntry(NamedTuple):
    """Registry entry mapping a service to its class and default config path."""

    cls: type[BaseService[Any]]
    config_path: Path


SERVICE_REGISTRY: dict[str, ServiceEntry] = {
    ServiceName.DASHBOARD: ServiceEntry(Dashboard, CONFIG_BASE / "services" / "dashboard.yaml"),
    ServiceName.WATCHER: ServiceEntry(Watcher, CONFIG_BASE / "services" / "watcher.yaml"),
}

logger = Logger("cli")


async def run_service(
    service_name: str,
    service_class: type[BaseService[Any]],
    service_dict: dict[str, Any],
    *,
    once: bool,
) -> int:
    """Run a service in one-shot or continuous mode.

    In one-shot mode the service is entered, runs a single cycle and exits.
    In continuous mode a Prometheus metrics server is started and the
    service runs until a shutdown signal is received.

    Returns:
        Exit code: 0 for success, 1 for failure.
    """
    service = service_class.from_dict(service_dict) if service_dict else service_class()

    if once:
        try:
            async with service:
                await service.run()
            logger.info(f"{service_name}_completed")
            return 0
        except Exception as e:  # Intentionally broad: CLI error boundary for one-shot mode
            logger.error(f"{service_name}_failed", error=str(e))
            return 1

    metrics_config = service.config.metrics
    metrics_server = await start_metrics_server(metrics_config)

    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        service.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with service:
            await service.run_forever()
        return 0
    except Exception as e:  # Intentionally broad: CLI error boundary for continuous mode
        logger.error(f"{service_name}_failed", error=str(e))
        return 1
    finally:
        await metrics_server.stop()
        if metrics_config.enabled:
            logger.info("metrics_server_stopped")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the service runner."""
    parser = argparse.ArgumentParser(
        prog="phoenixd-dashboard",
        description="phoenixd Dashboard Service Runner",
    )

    parser.add_argument(
        "service",
        choices=list(SERVICE_REGISTRY.keys()),
        help="Service to run",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Service config path (default: config/services/<service>.yaml)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run once and exit (default: run continuously)",
    )

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting.

    Installs a ``StructuredFormatter`` on the root handler so that output
    from ``Logger`` and from plain ``logging.getLogger()`` calls in utils is
    unified as ``level name message key=value ...``.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(str(path))


def _apply_application_name(service_dict: dict[str, Any], service_name: str) -> None:
    """Default the audit-log pool's ``application_name`` to the service name."""
    payment_log = service_dict.get("payment_log")
    if not isinstance(payment_log, dict) or not isinstance(payment_log.get("store"), dict):
        return
    pool = payment_log["store"].setdefault("pool", {})
    pool.setdefault("application_name", service_name)


async def main(argv: list[str] | None = None) -> int:
    """Parse args, load the service config and run the service."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    entry = SERVICE_REGISTRY[args.service]
    config_path = args.config or entry.config_path

    service_dict = _load_yaml_dict(config_path)
    _apply_application_name(service_dict, args.service)

    try:
        return await run_service(
            service_name=args.service,
            service_class=entry.cls,
            service_dict=service_dict,
            once=args.once,
        )
    except ConnectionError as e:
        logger.error("connection_failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
