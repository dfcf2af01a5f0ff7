"""
=============================================================================
HTTPCHAIN CLI ENTRY POINT
=============================================================================

Runs the todo example application.

=============================================================================
USAGE
=============================================================================

    # Run with defaults (localhost:8080)
    python -m httpchain

    # Custom port, all interfaces (containers)
    python -m httpchain --host 0.0.0.0 --port 3000

    # JSON access logs for an aggregator
    python -m httpchain --log-format json

    # Tighter body limit
    python -m httpchain --max-body-size 65536

Any option not given on the command line falls back to the HTTP_*
environment variables (see ServerConfig.from_env), then to the defaults.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import LOG_FORMATS, ServerConfig
from .server import HTTPServer
from .todo_app import create_todo_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpchain",
        description="Todo API served by the httpchain dispatch engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpchain                        # Run with defaults
  python -m httpchain --port 3000            # Custom port
  python -m httpchain --host 0.0.0.0         # Listen on all interfaces
  python -m httpchain --workers 8            # 8 worker threads
  python -m httpchain --log-format json      # JSON access log
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Port to listen on (default: 8080)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Number of worker threads (max will be 2x this)"
    )

    parser.add_argument(
        "--max-body-size",
        type=int,
        help="Largest request body decoded, in bytes (default: 1048576)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"httpchain {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """CLI arguments override the environment, which overrides defaults."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.min_workers = args.workers
        config.max_workers = args.workers * 2
    if args.max_body_size is not None:
        config.max_body_size = args.max_body_size
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    return config


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    try:
        config.validate()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    server = HTTPServer(create_todo_app(config=config), config)

    try:
        server.run()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
