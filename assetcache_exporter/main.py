"""Exporter entrypoint.

Starts the Prometheus scrape endpoint on a background thread and runs the
collection loop on the main thread until SIGTERM or SIGINT.
"""

import argparse
import signal
import sys
from typing import List, Optional, Tuple

import structlog
from prometheus_client import start_http_server
from pydantic import ValidationError

from .common.config import ExporterConfig
from .common.logging import configure_logging
from .common.metrics import ExporterMetrics, MetricRegistry, enable_process_metrics
from .loop import CollectionLoop
from .status import StatusFetcher

logger = structlog.get_logger("main")

SERVICE_NAME = "assetcache-exporter"


def build_exporter(config: ExporterConfig) -> Tuple[MetricRegistry, CollectionLoop]:
    """Wire fetcher, registry and loop from configuration."""
    registry = MetricRegistry()
    enable_process_metrics(registry.registry)
    exporter_metrics = ExporterMetrics(registry.registry)

    fetcher = StatusFetcher(
        config.assetcache_status_command,
        timeout=config.assetcache_status_timeout
    )
    loop = CollectionLoop(
        fetcher,
        registry,
        interval=config.assetcache_poll_interval,
        metrics=exporter_metrics
    )
    return registry, loop


def serve(config: ExporterConfig, registry: MetricRegistry) -> None:
    """Expose ``registry`` over HTTP; scrapes are answered on a daemon thread."""
    start_http_server(config.port, addr=config.assetcache_bind_address, registry=registry.registry)
    logger.info(
        "Serving metrics",
        address=config.assetcache_bind_address,
        port=config.port
    )


def install_signal_handlers(loop: CollectionLoop) -> None:
    """Stop the loop on SIGTERM/SIGINT instead of dying mid-cycle."""
    def _handle(signum, frame):
        logger.info("Shutdown signal received", signal=signal.Signals(signum).name)
        loop.stop()

    for signum in (signal.SIGTERM, signal.SIGINT):
        signal.signal(signum, _handle)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog=SERVICE_NAME,
        description="Prometheus exporter for the macOS Content Caching service"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Listen port (overrides the PORT environment variable)"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Collect a single cycle, print the exposition text and exit"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = parse_args(argv)

    try:
        config = ExporterConfig(port=args.port) if args.port is not None else ExporterConfig()
    except ValidationError as e:
        sys.stderr.write(f"Invalid configuration:\n{e}\n")
        return 2

    configure_logging(SERVICE_NAME, config.assetcache_log_level, config.assetcache_log_format)
    registry, loop = build_exporter(config)

    if args.once:
        report = loop.run_cycle()
        sys.stdout.write(registry.get_metrics())
        return 0 if report.ok else 1

    try:
        serve(config, registry)
    except OSError as e:
        logger.error(
            "Failed to bind metrics endpoint",
            address=config.assetcache_bind_address,
            port=config.port,
            error=str(e)
        )
        return 1

    install_signal_handlers(loop)
    loop.run_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
