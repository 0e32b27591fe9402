#!/usr/bin/env python3
"""
CUBRID Exporter - Prometheus metrics for CUBRID database servers.
Every GET on the telemetry path opens one connection, runs the enabled
scrapers against it and returns the samples in exposition format.
"""
import argparse
import sys
from typing import List, Optional

from config.settings import Settings, settings
from cubrid_exporter import __version__
from cubrid_exporter.collector.connection import (
    ConnectionManager,
    driver_available,
    make_connector,
)
from cubrid_exporter.collector.registry import ScraperRegistry, build_default_registry
from cubrid_exporter.common.correlation import set_component
from cubrid_exporter.common.exceptions import ConfigurationError
from cubrid_exporter.common.logging_config import set_level, setup_logging
from cubrid_exporter.common.shutdown import ShutdownManager
from cubrid_exporter.monitoring.metrics import get_exporter_metrics
from cubrid_exporter.web.handler import MetricsEndpoint
from cubrid_exporter.web.server import ExporterServer

logger = setup_logging(__name__, level=settings.logging.level if settings else "INFO")

set_component("exporter")


def build_parser(cfg: Settings, registry: ScraperRegistry) -> argparse.ArgumentParser:
    """CLI flags; defaults come from the environment-backed settings."""
    parser = argparse.ArgumentParser(
        description="CUBRID Exporter - expose CUBRID server metrics to Prometheus"
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default=cfg.web.listen_address,
        help=f"Address to listen on for web interface and telemetry (default: {cfg.web.listen_address})"
    )
    parser.add_argument(
        "--web.telemetry-path",
        dest="telemetry_path",
        default=cfg.web.telemetry_path,
        help=f"Path under which to expose metrics (default: {cfg.web.telemetry_path})"
    )
    parser.add_argument(
        "--timeout-offset",
        dest="timeout_offset",
        type=float,
        default=cfg.scrape.timeout_offset,
        help=f"Offset to subtract from timeout in seconds (default: {cfg.scrape.timeout_offset})"
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default=cfg.logging.level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help=f"Log level (default: {cfg.logging.level})"
    )

    # ON/OFF flag for every scraper
    for entry in registry.all():
        name = entry.scraper.name
        parser.add_argument(
            f"--collect.{name}",
            dest=f"collect_{name}",
            action=argparse.BooleanOptionalAction,
            default=entry.enabled_by_default,
            help=entry.scraper.help
        )

    parser.add_argument(
        "--version",
        action="version",
        version=f"cubrid_exporter {__version__}"
    )
    return parser


def create_server(cfg: Settings, args: argparse.Namespace, registry: ScraperRegistry) -> ExporterServer:
    """Wire registry, connection manager, endpoint and HTTP server."""
    connect = make_connector(
        cfg.cubrid.driver,
        cfg.cubrid.connection_string(),
        cfg.cubrid.user,
        cfg.cubrid.password,
    )
    if not driver_available(cfg.cubrid.driver):
        logger.warning(
            f"DB-API driver '{cfg.cubrid.driver}' is not installed; "
            f"every scrape will report cubrid_up 0"
        )

    endpoint = MetricsEndpoint(
        registry=registry,
        connection_manager=ConnectionManager(
            connect, max_lifetime=cfg.scrape.connection_max_lifetime_seconds
        ),
        metrics=get_exporter_metrics(),
        timeout_offset=args.timeout_offset,
        check_server_version=cfg.scrape.check_server_version,
    )
    return ExporterServer(
        endpoint,
        listen_address=args.listen_address,
        metrics_path=args.telemetry_path,
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    if settings is None:
        raise ConfigurationError("settings could not be loaded from the environment")

    registry = build_default_registry(settings.cubrid.database)
    args = build_parser(settings, registry).parse_args(argv)

    set_level(args.log_level)
    logger.setLevel(args.log_level)

    registry = registry.with_overrides({
        name: getattr(args, f"collect_{name}") for name in registry.names()
    })

    logger.info(f"Starting cubrid_exporter {__version__}")
    logger.info("Enabled scrapers:")
    for scraper in registry.defaults():
        logger.info(f" --collect.{scraper.name}")

    try:
        server = create_server(settings, args, registry)
        server.bind()
    except (OSError, ValueError) as e:
        logger.critical(f"Failed to start HTTP server on {args.listen_address}: {e}")
        sys.exit(1)

    shutdown = ShutdownManager()
    shutdown.register(server.stop, priority=0, name="http")
    shutdown.install_signal_handlers()

    server.serve_forever()
    logger.info("Exporter terminated")


if __name__ == "__main__":
    main()
