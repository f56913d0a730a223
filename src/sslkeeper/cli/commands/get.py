"""Get subcommand: resolve the certificate covering one domain."""

from __future__ import annotations

import json
import sys

from sslkeeper.cli.commands.startup import build_or_exit
from sslkeeper.core.errors import KeeperError
from sslkeeper.core.naming import domain_to_common_name


def run_get(config, args) -> None:
    from sslkeeper.cli.main import _print_error
    from sslkeeper.factory import create_manager

    manager = build_or_exit(create_manager, config, args)
    common_name = domain_to_common_name(args.domain)

    try:
        cert = manager.get_certificate(common_name)
    except KeeperError as exc:
        _print_error(f"cannot resolve {common_name}: {exc}")
        sys.exit(1)
    finally:
        manager.close()

    result = {
        "domain": args.domain,
        "common_name": cert.common_name,
        "name": cert.canonical_name,
        "remote_id": cert.remote_id,
        "expires_at": cert.expires_at.isoformat(),
        "updated": cert.updated,
    }
    if cert.has_material:
        result["subject"] = cert.metadata.subject_common_name
        result["domains"] = list(cert.metadata.subject_alt_names)
    print(json.dumps(result, indent=2))  # noqa: T201
