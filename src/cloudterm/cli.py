"""Command-line interface for cloudterm.

Provides the main entry point for running the bridge server and for
checking instance address resolution from a shell.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="cloudterm",
        description="WebSocket terminal bridge to remote instances over SSH",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/cloudterm.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("serve", help="Start the WebSocket bridge server")
    resolve_parser = subparsers.add_parser(
        "resolve", help="Resolve an instance id to its public address",
    )
    resolve_parser.add_argument("instance_id", type=str, help="Instance identifier")

    return parser.parse_args(argv)


async def _resolve(settings, instance_id: str) -> int:
    """Resolve one instance and print the result."""
    from cloudterm.resolver import ResolverError, build_resolver

    resolver = build_resolver(settings.resolver)
    try:
        target = await resolver.resolve(instance_id)
    except ResolverError as e:
        print(f"{instance_id}: {e}", file=sys.stderr)
        return 1
    finally:
        await resolver.aclose()
    print(f"{instance_id}: {target.address} ({target.state})")
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the cloudterm CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from cloudterm.config.settings import load_settings
    from cloudterm.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        logger.info("Starting bridge server")
        from cloudterm.server import create_app
        import uvicorn
        app = create_app(settings)
        uvicorn.run(
            app,
            host=settings.server.host,
            port=settings.server.port,
        )

    elif args.command == "resolve":
        sys.exit(asyncio.run(_resolve(settings, args.instance_id)))


if __name__ == "__main__":
    main()
