"""SSLKEEPER command-line entry point.

Usage::

    sslkeeper -c /etc/sslkeeper/config.yaml
    sslkeeper -c config.yaml --validate-only
    sslkeeper -c config.yaml run
    sslkeeper -c config.yaml get cdn.example.com
    sslkeeper -c config.yaml reconcile
    sslkeeper -c config.yaml inspect
    python -m sslkeeper -c config.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from sslkeeper import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sslkeeper",
        description="SSLKEEPER: keep Alibaba Cloud CDN, OSS and Live certificates current",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Serve every agent, then reconcile (default)")

    get_parser = subparsers.add_parser("get", help="Resolve the certificate covering one domain")
    get_parser.add_argument("domain", help="Service domain, e.g. cdn.example.com")

    subparsers.add_parser("reconcile", help="Delete duplicate and expired certificates only")
    subparsers.add_parser("inspect", help="List self-managed remote store certificates")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"sslkeeper: error: {message}", file=sys.stderr)  # noqa: T201


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    try:
        from sslkeeper.config import ConfigValidationError, KeeperConfig

        config = KeeperConfig(config_file=str(config_path))
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from sslkeeper.logging import configure_logging

    configure_logging(config.settings.logging)
    if args.debug:
        logging.getLogger("sslkeeper").setLevel(logging.DEBUG)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    command = args.command or "run"

    if command == "get":
        from sslkeeper.cli.commands.get import run_get

        run_get(config, args)
    elif command == "reconcile":
        from sslkeeper.cli.commands.reconcile import run_reconcile

        run_reconcile(config, args)
    elif command == "inspect":
        from sslkeeper.cli.commands.inspect import run_inspect

        run_inspect(config, args)
    else:
        from sslkeeper.cli.commands.run import run_keeper

        run_keeper(config, args)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    from sslkeeper.logging.sanitize import sanitize_for_logs

    s = config.settings
    summary = {
        "config": str(config),
        "region_id": s.credentials.region_id,
        "storage": s.storage.backend,
        "acme": s.acme.directory_url,
        "challenge_handler": s.acme.challenge_handler,
        "agents": list(s.agents.enabled),
        "challenge_handler_config": sanitize_for_logs(s.acme.challenge_handler_config),
    }
    for key, value in summary.items():
        print(f"{key:>26}: {value}")  # noqa: T201
