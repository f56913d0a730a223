"""Shared startup helper for subcommands that talk to the cloud."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


def build_or_exit(builder: Callable[[Any], Any], config, args) -> Any:
    """Call *builder* with the settings; exit 1 on any startup failure."""
    from sslkeeper.cli.main import _print_error

    try:
        return builder(config.settings)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"startup failed: {exc}")
        sys.exit(1)
