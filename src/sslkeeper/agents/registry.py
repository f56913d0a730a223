"""Discovery agent registry.

Builds the agents listed in ``agents.enabled``, in that order.  Supports
the built-in agents (``cdn``, ``oss``, ``live``) and custom agents via
the ``ext:`` prefix.
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from sslkeeper.agents.base import DiscoveryAgent
from sslkeeper.core.errors import DiscoveryError

if TYPE_CHECKING:
    from sslkeeper.config.settings import KeeperSettings

log = logging.getLogger(__name__)

# Maps config string -> (module_path, class_name)
BUILTIN_AGENTS: dict[str, tuple[str, str]] = {
    "cdn": ("sslkeeper.agents.cdn", "CdnAgent"),
    "oss": ("sslkeeper.agents.oss", "OssAgent"),
    "live": ("sslkeeper.agents.live", "LiveAgent"),
}


def load_agents(settings: KeeperSettings) -> list[DiscoveryAgent]:
    """Build every enabled discovery agent, in configured order.

    Raises
    ------
    DiscoveryError
        If an agent cannot be loaded.

    """
    return [load_agent(name, settings) for name in settings.agents.enabled]


def load_agent(name: str, settings: KeeperSettings) -> DiscoveryAgent:
    if name in BUILTIN_AGENTS:
        mod_path, cls_name = BUILTIN_AGENTS[name]
    elif name.startswith("ext:"):
        mod_path, _, cls_name = name[4:].rpartition(".")
        if not mod_path:
            msg = (
                f"Invalid external agent '{name[4:]}': must be fully "
                "qualified (e.g. 'mypackage.module.ClassName')"
            )
            raise DiscoveryError(msg)
    else:
        msg = (
            f"Unknown discovery agent '{name}'; "
            f"built-in options: {sorted(BUILTIN_AGENTS)}. "
            "Use 'ext:mypackage.module.ClassName' for custom agents."
        )
        raise DiscoveryError(msg)

    try:
        module = importlib.import_module(mod_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load discovery agent '{name}': {exc}"
        raise DiscoveryError(msg) from exc

    if not (isinstance(cls, type) and issubclass(cls, DiscoveryAgent)):
        msg = f"Discovery agent '{name}' is not a subclass of DiscoveryAgent"
        raise DiscoveryError(msg)
    if getattr(cls.discover, "__isabstractmethod__", False):
        msg = f"Discovery agent '{name}' does not implement 'discover()'"
        raise DiscoveryError(msg)
    if cls.from_settings.__func__ is DiscoveryAgent.from_settings.__func__:
        msg = f"Discovery agent '{name}' does not implement 'from_settings()'"
        raise DiscoveryError(msg)

    agent = cls.from_settings(settings)
    log.info("Loaded discovery agent: %s", name)
    return agent
