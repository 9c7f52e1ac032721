"""
Command line entry point.

    python -m userservice                     # PORT / HOST / LOG_LEVEL or defaults
    python -m userservice --port 8080
    python -m userservice -H 0.0.0.0 -w 16 -l DEBUG
"""

import argparse
import sys
from typing import Optional, Sequence

from . import __version__
from .app import create_app
from .config import LOG_LEVELS, ServerConfig


def build_parser(defaults: ServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="userservice",
        description="In-memory users CRUD service over HTTP/1.1",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  PORT        port to listen on (default: 3001)
  HOST        address to bind (default: 127.0.0.1)
  LOG_LEVEL   logging level (default: INFO)

Flags take precedence over the environment.
        """
    )

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=defaults.workers,
        help=f"Connection worker threads (default: {defaults.workers})"
    )
    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=defaults.log_level,
        help=f"Logging level (default: {defaults.log_level})"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"userservice {__version__}"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse arguments, build the app and serve until interrupted."""
    try:
        defaults = ServerConfig.from_env()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    args = build_parser(defaults).parse_args(argv)

    defaults.host = args.host
    defaults.port = args.port
    defaults.workers = args.workers
    defaults.log_level = args.log_level

    try:
        server = create_app(defaults)
        server.run()
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
