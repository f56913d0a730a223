"""Run subcommand: the full serve-then-reconcile pass."""

from __future__ import annotations

import sys

from sslkeeper.cli.commands.startup import build_or_exit


def run_keeper(config, args) -> None:
    """Run the keeper once; exit 2 if any request or agent failed."""
    from sslkeeper.factory import create_keeper

    keeper = build_or_exit(create_keeper, config, args)
    try:
        report = keeper.run()
    finally:
        keeper.close()
    if report.failed:
        sys.exit(2)
