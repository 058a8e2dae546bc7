"""Application entry point for the chain monitor."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from chainmon import __version__
from chainmon.api.app import HealthState, create_app, serve
from chainmon.chain.substrate import SubstrateChainClient
from chainmon.config.settings import ENV_CONFIG_PATH, load_config
from chainmon.engine.supervisor import Supervisor
from chainmon.errors.chainmon_errors import ConfigError
from chainmon.metrics.collector import MonitorMetrics
from chainmon.reporters.factory import build_reporters

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chainmon.config.settings import AppConfig
    from chainmon.reporters.base import Reporter

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="chainmon",
        description="Watch Substrate chains for account activity and send notifications.",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=os.environ.get(ENV_CONFIG_PATH, ""),
        help=f"path to the YAML config file (default: ${ENV_CONFIG_PATH})",
    )
    parser.add_argument("--log-level", default=None, help="override the configured log level")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


async def run(
    config: AppConfig,
    reporters: Sequence[Reporter],
    *,
    config_name: str,
    metrics: MonitorMetrics,
) -> None:
    """Run the supervisor (and the health probe when enabled) until a signal arrives."""
    health = HealthState()
    supervisor = Supervisor(
        config,
        reporters,
        SubstrateChainClient,
        config_name=config_name,
        health=health,
        metrics=metrics,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, supervisor.stop)

    probe: asyncio.Task[None] | None = None
    if config.health.enabled:
        app = create_app(health=health, metrics=metrics)
        probe = asyncio.create_task(serve(app, host=config.health.host, port=config.health.port))

    try:
        await supervisor.run()
    finally:
        if probe is not None:
            probe.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await probe
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def main(argv: Sequence[str] | None = None) -> None:
    """Start the chain monitor."""
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    if not args.config:
        logger.error("no config file given; use -c <path> or set %s", ENV_CONFIG_PATH)
        sys.exit(1)

    try:
        config = load_config(args.config)
        logging.getLogger().setLevel((args.log_level or config.log_level).upper())
        metrics = MonitorMetrics()
        reporters = build_reporters(config, metrics=metrics)
    except ConfigError as exc:
        logger.error("%s", exc.message)
        sys.exit(1)

    config_name = Path(args.config).stem
    logger.info("starting chainmon %s with config %s", __version__, config_name)
    asyncio.run(run(config, reporters, config_name=config_name, metrics=metrics))
    logger.info("bye")


if __name__ == "__main__":
    main()
