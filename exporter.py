#!/usr/bin/env python3
"""
PRTG Exporter - polls a PRTG server and serves its sensor and channel values
as Prometheus gauges.

Run as a long-lived service (scrape endpoint + refresh loop), or with
``--once`` to perform a single refresh and print the exposition text.
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from config.settings import Settings, load_settings
from prtg_exporter import __version__
from prtg_exporter.common.correlation import set_component
from prtg_exporter.common.exceptions import ConfigurationError
from prtg_exporter.common.logging_config import setup_logging
from prtg_exporter.common.shutdown import ShutdownManager
from prtg_exporter.monitoring.metrics import (
    MetricsRegistry,
    get_metrics_registry,
    start_metrics_server,
)
from prtg_exporter.poller.orchestrator import RefreshOrchestrator
from prtg_exporter.poller.scheduler import RefreshScheduler
from prtg_exporter.prtg.client import PrtgApiClient
from prtg_exporter.prtg.fetchers import ChannelFetcher, SensorFetcher

logger = setup_logging(level="INFO")


def build_client(settings: Settings, registry: MetricsRegistry) -> PrtgApiClient:
    return PrtgApiClient(
        server=settings.prtg.server,
        username=settings.prtg.username,
        passhash=settings.prtg.password,
        timeout=settings.prtg.timeout_seconds,
        verify=settings.prtg.verify_tls,
        on_retry=lambda _state: registry.inc_api_retries(),
    )


def build_orchestrator(client: PrtgApiClient, registry: MetricsRegistry) -> RefreshOrchestrator:
    return RefreshOrchestrator(
        sensor_fetcher=SensorFetcher(client),
        channel_fetcher=ChannelFetcher(client),
        registry=registry,
    )


async def run_once(settings: Settings, registry: MetricsRegistry) -> int:
    """Single refresh; print the snapshot. Returns the process exit code."""
    async with build_client(settings, registry) as client:
        orchestrator = build_orchestrator(client, registry)
        try:
            await orchestrator.refresh()
        except Exception as e:
            logger.error(f"Refresh failed: {e}")
            return 1
    sys.stdout.write(registry.snapshot().decode("utf-8"))
    return 0


async def run_service(settings: Settings, registry: MetricsRegistry) -> int:
    """Serve /metrics and refresh until SIGINT/SIGTERM. Returns the exit code."""
    client = build_client(settings, registry)
    scheduler = RefreshScheduler(
        build_orchestrator(client, registry),
        interval_seconds=settings.exporter.refresh_interval_seconds,
        skip_overlapping_ticks=settings.exporter.skip_overlapping_ticks,
        registry=registry,
    )

    try:
        server, _thread = start_metrics_server(settings.exporter.port, registry)
    except OSError:
        await client.close()
        return 1

    def stop_metrics_server() -> None:
        server.shutdown()
        server.server_close()

    scheduler_task = asyncio.create_task(scheduler.run())

    shutdown = ShutdownManager()
    shutdown.register(scheduler.stop, priority=0, name="scheduler")
    shutdown.register(
        lambda: asyncio.gather(scheduler_task, return_exceptions=True),
        priority=10,
        name="in-flight refresh",
    )
    shutdown.register(client.close, priority=30, name="PRTG client")
    shutdown.register(stop_metrics_server, priority=40, name="metrics server")
    shutdown.install_signal_handlers()

    shutdown_task = asyncio.create_task(shutdown.wait_for_shutdown())
    await asyncio.wait(
        {scheduler_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
    )

    await shutdown.run_callbacks()
    shutdown_task.cancel()
    await asyncio.gather(scheduler_task, shutdown_task, return_exceptions=True)
    return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="PRTG Exporter - expose PRTG sensor and channel values to Prometheus"
    )
    parser.add_argument(
        "--config",
        help="JSON config file (PRTG/Exporter sections); overrides environment"
    )
    parser.add_argument("--port", type=int, help="Listen port (default: 9705)")
    parser.add_argument(
        "--interval",
        type=float,
        help="Refresh interval in seconds (default: 120)"
    )
    parser.add_argument("--log-level", help="Log level (default: INFO)")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single refresh, print the metrics and exit"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    set_component("exporter")

    try:
        settings = load_settings(
            args.config,
            overrides={
                "exporter": {"port": args.port, "refresh_interval_seconds": args.interval},
                "logging": {"level": args.log_level},
            },
        )
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(
        level=settings.logging.level,
        fmt=settings.logging.format,
        stream=sys.stderr if args.once else None,
    )
    logger.info(
        f"PRTG exporter {__version__} starting: server={settings.prtg.server}, "
        f"port={settings.exporter.port}, "
        f"interval={settings.exporter.refresh_interval_seconds}s"
    )

    registry = get_metrics_registry(
        stale_after_cycles=settings.exporter.stale_after_cycles
    )
    runner = run_once if args.once else run_service

    try:
        exit_code = asyncio.run(runner(settings, registry))
    except Exception as e:
        logger.critical(f"Exporter failed: {e}")
        sys.exit(1)

    logger.info("Exporter terminated")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
