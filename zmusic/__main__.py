"""
zmusic - Entry Point

Run with: python -m zmusic
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

from zmusic import __version__
from zmusic.app import PlayerApp
from zmusic.config import PlayerConfig, load_config


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="zmusic",
        description="zmusic - Player core for the Z-Music streaming client",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="TOML file layered over the packaged defaults",
    )

    parser.add_argument(
        "--api-url",
        type=str,
        default=None,
        help="Catalog API base URL (default: from config or ZMUSIC_API_URL)",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address for the web surface (default: 127.0.0.1)",
    )

    parser.add_argument(
        "--web-port",
        type=int,
        default=None,
        help="Web port (default: 8765)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PlayerConfig:
    """Load the configuration and apply command line overrides."""
    config = load_config(args.config)
    overrides = {}
    if args.api_url:
        overrides["api_base_url"] = args.api_url
    if args.host:
        overrides["web_host"] = args.host
    if args.web_port is not None:
        overrides["web_port"] = args.web_port
    return replace(config, **overrides) if overrides else config


async def run_app(config: PlayerConfig) -> None:
    """Start and run the player."""
    app = PlayerApp(config)
    await app.run()


def main() -> int:
    """Main entry point for the application."""
    args = parse_args()
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)
    logger.info("Starting zmusic...")

    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    try:
        asyncio.run(run_app(config))
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    logger.info("Player stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
