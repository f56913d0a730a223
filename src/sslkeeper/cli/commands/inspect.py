"""Inspect subcommand: list self-managed remote store certificates.

Usage::

    sslkeeper -c config.yaml inspect
"""

from __future__ import annotations

import json
import sys

from sslkeeper.cli.commands.startup import build_or_exit
from sslkeeper.core.errors import KeeperError
from sslkeeper.core.naming import is_self_managed
from sslkeeper.core.types import OrderType


def run_inspect(config, args) -> None:
    from sslkeeper.cli.main import _print_error
    from sslkeeper.remote.cas import CasCertificateStore

    store = build_or_exit(
        lambda s: CasCertificateStore.from_settings(s.credentials, s.remote_store),
        config,
        args,
    )

    try:
        entries = store.search(order_type=OrderType.UPLOAD)
    except KeeperError as exc:
        _print_error(str(exc))
        sys.exit(1)

    result = [
        {
            "id": e.id,
            "name": e.name,
            "domains": list(e.domains),
            "status": e.status,
            "expires_at": e.expires_at.isoformat() if e.expires_at else None,
        }
        for e in entries
        if is_self_managed(e.name)
    ]
    print(json.dumps(result, indent=2))  # noqa: T201
