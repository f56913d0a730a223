"""Reconcile subcommand: prune the remote store without serving agents."""

from __future__ import annotations

import json

from sslkeeper.cli.commands.startup import build_or_exit
from sslkeeper.keeper import Keeper, RunReport


def run_reconcile(config, args) -> None:
    from sslkeeper.factory import create_manager

    manager = build_or_exit(create_manager, config, args)
    keeper = Keeper([], manager)
    report = RunReport()
    try:
        keeper.reconcile(report)
    finally:
        keeper.close()
    print(  # noqa: T201
        json.dumps(
            {
                "deleted_duplicates": report.deleted_duplicates,
                "deleted_expired": report.deleted_expired,
            },
            indent=2,
        ),
    )
