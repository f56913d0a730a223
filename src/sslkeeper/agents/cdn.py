"""Alibaba Cloud CDN discovery agent."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from alibabacloud_cdn20180510 import models as cdn_models
from alibabacloud_cdn20180510.client import Client as CdnClient

from sslkeeper.agents.base import (
    CertificateRequest,
    DiscoveryAgent,
    iter_pages,
    parse_service_time,
    parse_tag,
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


class CdnCertificateRequest(CertificateRequest):
    """A CDN accelerated domain that needs a certificate."""

    def __init__(self, client: Any, domain: str) -> None:
        super().__init__(domain)
        self._client = client

    def service_name(self) -> str:
        return ServiceName.CDN.value

    def install_certificate(self, cert: Certificate) -> None:
        if cert.remote_id is None:
            msg = f"certificate {cert.common_name} has no remote store id"
            raise InstallError(msg)
        request = cdn_models.SetCdnDomainSSLCertificateRequest(
            domain_name=self.domain,
            sslprotocol="on",
            cert_type="cas",
            cert_name=cert.canonical_name,
            cert_id=cert.remote_id,
        )
        try:
            self._client.set_cdn_domain_sslcertificate(request)
        except Exception as exc:  # noqa: BLE001
            msg = f"set cdn domain ssl certificate failed for {self.domain}: {exc}"
            raise InstallError(msg) from exc
        log.info("CDN %s now serves %s", self.domain, cert.canonical_name)


class CdnAgent(DiscoveryAgent):
    """Enumerate CDN domains whose certificate is missing or expiring.

    Parameters
    ----------
    client:
        An ``alibabacloud_cdn20180510`` client.
    tag:
        Optional ``key[:value]`` filter on domain tags.
    resource_group_id:
        Optional resource group filter.
    page_size:
        ``DescribeUserDomains`` page size.

    """

    name = ServiceName.CDN.value

    def __init__(
        self,
        client: Any,
        *,
        tag: str | None = None,
        resource_group_id: str | None = None,
        page_size: int = 500,
        queue_size: int = 16,
    ) -> None:
        super().__init__(queue_size=queue_size)
        self._client = client
        self._tag = parse_tag(tag) if tag else None
        self._resource_group_id = resource_group_id
        self._page_size = page_size

    @classmethod
    def from_settings(cls, settings: KeeperSettings) -> CdnAgent:
        cdn = settings.agents.cdn
        client = CdnClient(openapi_config(settings.credentials, cdn.endpoint))
        return cls(
            client,
            tag=cdn.tag,
            resource_group_id=cdn.resource_group_id,
            page_size=cdn.page_size,
            queue_size=settings.agents.queue_size,
        )

    def discover(self) -> Iterator[CertificateRequest]:
        for domain_name in iter_pages(self._list_domains):
            if self._has_fresh_certificate(domain_name):
                log.debug("CDN %s: certificate is fresh", domain_name)
                continue
            yield CdnCertificateRequest(self._client, domain_name)

    def _list_domains(self, page_number: int) -> tuple[list[str], int, int]:
        request = cdn_models.DescribeUserDomainsRequest(
            page_size=self._page_size,
            page_number=page_number,
        )
        if self._tag is not None:
            key, value = self._tag
            request.tag = [cdn_models.DescribeUserDomainsRequestTag(key=key, value=value)]
        if self._resource_group_id:
            request.resource_group_id = self._resource_group_id

        try:
            body = self._client.describe_user_domains(request).body
        except Exception as exc:  # noqa: BLE001
            msg = f"list cdn domains failed (page {page_number}): {exc}"
            raise DiscoveryError(msg, retryable=True) from exc

        page_data = body.domains.page_data if body.domains else None
        names = [d.domain_name for d in page_data or []]
        return names, body.total_count or 0, body.page_size or self._page_size

    def _has_fresh_certificate(self, domain_name: str) -> bool:
        request = cdn_models.DescribeDomainCertificateInfoRequest(domain_name=domain_name)
        try:
            body = self._client.describe_domain_certificate_info(request).body
        except Exception as exc:  # noqa: BLE001
            msg = f"describe cdn certificate info failed for {domain_name}: {exc}"
            raise DiscoveryError(msg, retryable=True) from exc

        infos = body.cert_infos.cert_info if body.cert_infos else None
        for info in infos or []:
            expires_at = parse_service_time(info.cert_expire_time)
            if expires_at is not None and is_fresh(expires_at):
                return True
        return False
