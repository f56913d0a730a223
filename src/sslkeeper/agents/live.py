"""ApsaraVideo Live discovery agent."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from alibabacloud_live20161101 import models as live_models
from alibabacloud_live20161101.client import Client as LiveClient

from sslkeeper.agents.base import (
    CertificateRequest,
    DiscoveryAgent,
    iter_pages,
    parse_service_time,
)
from sslkeeper.certs.cert_utils import is_fresh
from sslkeeper.clients import openapi_config
from sslkeeper.core.errors import DiscoveryError, InstallError
from sslkeeper.core.types import ServiceName

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sslkeeper.certs.certificate import Certificate
    from sslkeeper.config.settings import KeeperSettings

log = logging.getLogger(__name__)


class LiveCertificateRequest(CertificateRequest):
    """A live-streaming domain that needs a certificate."""

    def __init__(self, client: Any, domain: str) -> None:
        super().__init__(domain)
        self._client = client

    def service_name(self) -> str:
        return ServiceName.LIVE.value

    def install_certificate(self, cert: Certificate) -> None:
        # Live references CAS certificates by name only.
        request = live_models.SetLiveDomainCertificateRequest(
            domain_name=self.domain,
            cert_name=cert.canonical_name,
            cert_type="cas",
            sslprotocol="on",
            force_set="1",
        )
        try:
            self._client.set_live_domain_certificate(request)
        except Exception as exc:  # noqa: BLE001
            msg = f"set live domain certificate failed for {self.domain}: {exc}"
            raise InstallError(msg) from exc
        log.info("Live %s now serves %s", self.domain, cert.canonical_name)


class LiveAgent(DiscoveryAgent):
    """Enumerate live domains whose certificate is missing or expiring."""

    name = ServiceName.LIVE.value

    def __init__(self, client: Any, *, page_size: int = 50, queue_size: int = 16) -> None:
        super().__init__(queue_size=queue_size)
        self._client = client
        self._page_size = page_size

    @classmethod
    def from_settings(cls, settings: KeeperSettings) -> LiveAgent:
        live = settings.agents.live
        client = LiveClient(
            openapi_config(settings.credentials, live.endpoint, region_id=live.region_id),
        )
        return cls(client, page_size=live.page_size, queue_size=settings.agents.queue_size)

    def discover(self) -> Iterator[CertificateRequest]:
        for domain_name in iter_pages(self._list_domains):
            log.debug("Checking live domain %s", domain_name)
            if self._has_fresh_certificate(domain_name):
                continue
            yield LiveCertificateRequest(self._client, domain_name)

    def _list_domains(self, page_number: int) -> tuple[list[str], int, int]:
        request = live_models.DescribeLiveUserDomainsRequest(
            page_size=self._page_size,
            page_number=page_number,
        )
        try:
            body = self._client.describe_live_user_domains(request).body
        except Exception as exc:  # noqa: BLE001
            msg = f"describe live user domains failed (page {page_number}): {exc}"
            raise DiscoveryError(msg, retryable=True) from exc

        page_data = body.domains.page_data if body.domains else None
        names = [d.domain_name for d in page_data or []]
        return names, body.total_count or 0, body.page_size or self._page_size

    def _has_fresh_certificate(self, domain_name: str) -> bool:
        request = live_models.DescribeLiveDomainCertificateInfoRequest(domain_name=domain_name)
        try:
            body = self._client.describe_live_domain_certificate_info(request).body
        except Exception as exc:  # noqa: BLE001
            msg = f"describe live certificate info failed for {domain_name}: {exc}"
            raise DiscoveryError(msg, retryable=True) from exc

        infos = body.cert_infos.cert_info if body.cert_infos else None
        for info in infos or []:
            expires_at = parse_service_time(info.cert_expire_time)
            if expires_at is not None and is_fresh(expires_at):
                return True
        return False
