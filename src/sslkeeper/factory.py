"""Wire collaborators from settings.

Construction failures here are startup failures: the CLI reports them
and exits with status 1.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sslkeeper.agents.registry import load_agents
from sslkeeper.certs.manager import CertificateManager
from sslkeeper.issuance.acme import AcmeIssuanceClient
from sslkeeper.keeper import Keeper
from sslkeeper.remote.cas import CasCertificateStore
from sslkeeper.storage.registry import load_blob_storage

if TYPE_CHECKING:
    from sslkeeper.config.settings import KeeperSettings

log = logging.getLogger(__name__)


def create_manager(settings: KeeperSettings) -> CertificateManager:
    """Build a certificate manager with storage, CAS, and ACME wired in."""
    storage = load_blob_storage(settings)
    remote_store = CasCertificateStore.from_settings(
        settings.credentials,
        settings.remote_store,
    )
    issuer = AcmeIssuanceClient(settings.acme, storage, settings.credentials)
    try:
        issuer.startup_check()
    except Exception:
        issuer.close()
        raise
    return CertificateManager(remote_store, storage, issuer)


def create_keeper(settings: KeeperSettings) -> Keeper:
    """Build a keeper with every enabled discovery agent."""
    manager = create_manager(settings)
    agents = load_agents(settings)
    log.info("Keeper ready with agents: %s", ", ".join(a.name for a in agents) or "(none)")
    return Keeper(agents, manager)
