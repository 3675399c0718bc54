#!/usr/bin/env python3
"""Command line entry point for the ping telemetry collector.

Usage:
    python -m ping_telemetry [--config FILE] [--count N] [--log-level LEVEL]

Options:
    --config FILE       TOML configuration file (default: $PING_TELEMETRY_CONFIG or ./config.toml)
    --count N           Override ping_count from the configuration
    --log-level LEVEL   DEBUG, INFO, WARNING, ERROR (default: $PING_TELEMETRY_LOG_LEVEL or INFO)
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys

from ping_telemetry.collector import CollectionReport, PingCollector
from ping_telemetry.config import CollectorConfig, load_config
from ping_telemetry.exceptions import CollectionAbortedError, ConfigError, StoreError
from ping_telemetry.logging_config import configure_logging
from ping_telemetry.persistence.factory import create_store
from ping_telemetry.probe.ping import PingProbe, ProbeFactory

logger = logging.getLogger("ping_telemetry")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="ping-telemetry",
        description="Measure ping latency to configured hosts and store the samples.",
    )
    parser.add_argument("--config", default=None, help="TOML configuration file")
    parser.add_argument("--count", type=int, default=None, help="Override ping_count")
    parser.add_argument("--log-level", default=None, help="Logging level")
    return parser.parse_args(argv)


async def collect(
    config: CollectorConfig,
    probe_factory: ProbeFactory = PingProbe,
) -> CollectionReport:
    """Open the configured store and run one collection pass.

    Args:
        config: Validated configuration.
        probe_factory: Callable building a probe for (host, interval).

    Returns:
        The CollectionReport of the run.
    """
    async with create_store(config) as store:
        return await PingCollector(config, store, probe_factory=probe_factory).run()


def exit_code_for(report: CollectionReport, config: CollectorConfig) -> int:
    """Map a finished run to a process exit code."""
    if config.fail_on_flush_error and not report.writer.flushed:
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the collector and return the process exit code."""
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_config(args.config)
        if args.count is not None:
            config = dataclasses.replace(config, ping_count=args.count)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    try:
        report = asyncio.run(collect(config))
    except CollectionAbortedError as exc:
        logger.error("%s", exc)
        return 1
    except StoreError as exc:
        logger.error("Store unavailable: %s", exc)
        return 1

    logger.info(
        "Collected %d measurements from %d hosts (%d failed), flushed=%s",
        report.total_emitted,
        len(config.ping_targets),
        len(report.failed_hosts),
        report.writer.flushed,
    )
    return exit_code_for(report, config)


if __name__ == "__main__":
    sys.exit(main())
