#!/usr/bin/env python3
"""Kitty bridge PTY server.

Usage:
    # Listen on localhost:8787
    python -m pty_server

    # Bind elsewhere, with bridge settings from a .env file
    python -m pty_server --host 0.0.0.0 --port 9000 --env-file bridge.env
"""

import argparse
import asyncio
import logging
import os

from dotenv import load_dotenv

from kitty_bridge import BridgeSettings
from pty_server.websocket import PtyWSServer

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8787

logger = logging.getLogger(__name__)


def _default_port() -> int:
    value = os.environ.get("PTY_PORT")
    if value:
        try:
            return int(value)
        except ValueError:
            logger.warning("Ignoring invalid PTY_PORT=%r", value)
    return DEFAULT_PORT


def main():
    parser = argparse.ArgumentParser(
        description="Kitty bridge PTY server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  PTY_HOST, PTY_PORT               default bind address
  KITTY_BRIDGE_TRACE               trace rewritten commands
  KITTY_BRIDGE_DEBUG               log each rewritten chunk
  KITTY_BRIDGE_MAX_DIMENSION       pixel limit (default: 10000)
  KITTY_BRIDGE_RESIZER             pillow, sips or off
        """,
    )
    parser.add_argument(
        "--host",
        help=f"Host to bind to (default: $PTY_HOST or {DEFAULT_HOST})",
    )
    parser.add_argument(
        "--port",
        type=int,
        help=f"Port to bind to (default: $PTY_PORT or {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: .env)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    load_dotenv(args.env_file)

    host = args.host or os.environ.get("PTY_HOST") or DEFAULT_HOST
    port = args.port if args.port is not None else _default_port()

    server = PtyWSServer(host=host, port=port, settings=BridgeSettings.from_env())
    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
