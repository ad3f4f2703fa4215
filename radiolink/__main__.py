"""
RadioLink - Entry Point

Run with: python -m radiolink
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from radiolink.config import AppConfig, ConfigError, load_config
from radiolink.core.settings import OperatingMode
from radiolink.server import RadioLinkServer


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    for name in ("asyncio", "httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="radiolink",
        description="RadioLink - Internet radio player with LAN remote control",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="TOML file overriding the bundled defaults",
    )

    parser.add_argument(
        "--mode",
        choices=[m.value for m in OperatingMode],
        default=None,
        help="Start in this mode instead of the saved one",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Command listener bind address (default: 0.0.0.0)",
    )

    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=None,
        help="Command port, for listening and for reaching a Player (default: 6435)",
    )

    parser.add_argument(
        "--peer",
        type=str,
        default=None,
        help="Player address used in remote mode",
    )

    parser.add_argument(
        "--web-port",
        type=int,
        default=None,
        help="HTTP API port (default: 8080)",
    )

    parser.add_argument(
        "--no-web",
        action="store_true",
        help="Do not start the HTTP API",
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    return parser.parse_args(argv)


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Apply command line overrides on top of the loaded configuration."""
    if args.host is not None:
        config.listener.host = args.host
    if args.port is not None:
        config.listener.port = args.port
    if args.web_port is not None:
        config.web.port = args.web_port
    if args.no_web:
        config.web.enabled = False
    return config


async def run_server(
    config: AppConfig, mode: OperatingMode | None, peer: str | None = None
) -> None:
    """Start and run RadioLink."""
    server = RadioLinkServer(config, initial_mode=mode, initial_peer=peer)
    await server.run()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)

    try:
        config = apply_overrides(load_config(args.config), args)
    except ConfigError as e:
        logger.error("%s", e)
        return 2

    mode = OperatingMode(args.mode) if args.mode else None
    logger.info("Starting RadioLink...")

    try:
        asyncio.run(run_server(config, mode, args.peer))
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    logger.info("RadioLink stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
