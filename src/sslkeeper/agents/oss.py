"""OSS bucket custom-domain (CNAME) discovery agent."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import oss2
from oss2.models import CertInfo, PutBucketCnameRequest

from sslkeeper.agents.base import CertificateRequest, DiscoveryAgent, parse_service_time
from sslkeeper.certs.cert_utils import is_fresh
from sslkeeper.clients import oss_auth, oss_endpoint
from sslkeeper.core.errors import DiscoveryError, InstallError
from sslkeeper.core.types import ServiceName

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sslkeeper.certs.certificate import Certificate
    from sslkeeper.config.settings import KeeperSettings

log = logging.getLogger(__name__)


class OssCertificateRequest(CertificateRequest):
    """A bucket custom domain that needs a certificate."""

    def __init__(self, bucket: Any, domain: str) -> None:
        super().__init__(domain)
        self._bucket = bucket

    def service_name(self) -> str:
        return ServiceName.OSS.value

    def install_certificate(self, cert: Certificate) -> None:
        if cert.remote_id is None:
            msg = f"certificate {cert.common_name} has no remote store id"
            raise InstallError(msg)
        request = PutBucketCnameRequest(
            self.domain,
            CertInfo(cert_id=str(cert.remote_id), force=True),
        )
        try:
            self._bucket.put_bucket_cname(request)
        except oss2.exceptions.OssError as exc:
            msg = f"set oss bucket cname failed for {self.domain}: {exc}"
            raise InstallError(msg) from exc
        log.info("OSS %s (%s) now serves %s", self.domain, self._bucket.bucket_name, cert.canonical_name)


class OssAgent(DiscoveryAgent):
    """Enumerate bucket custom domains whose certificate is missing or expiring.

    Parameters
    ----------
    service:
        An ``oss2.Service`` used to list buckets.
    bucket_factory:
        Callable ``(bucket_info) -> oss2.Bucket`` for the bucket's region.

    """

    name = ServiceName.OSS.value

    def __init__(
        self,
        service: Any,
        bucket_factory: Callable[[Any], Any],
        *,
        queue_size: int = 16,
    ) -> None:
        super().__init__(queue_size=queue_size)
        self._service = service
        self._bucket_factory = bucket_factory

    @classmethod
    def from_settings(cls, settings: KeeperSettings) -> OssAgent:
        auth = oss_auth(settings.credentials)
        endpoint = settings.agents.oss.endpoint or oss_endpoint(settings.credentials.region_id)

        def bucket_factory(info: Any) -> Any:
            bucket_endpoint = (
                f"https://{info.extranet_endpoint}"
                if info.extranet_endpoint
                else oss_endpoint(info.region or info.location.removeprefix("oss-"))
            )
            return oss2.Bucket(auth, bucket_endpoint, info.name)

        return cls(
            oss2.Service(auth, endpoint),
            bucket_factory,
            queue_size=settings.agents.queue_size,
        )

    def discover(self) -> Iterator[CertificateRequest]:
        for info in self._list_buckets():
            log.debug("Scanning custom domains of bucket %s", info.name)
            bucket = self._bucket_factory(info)
            try:
                cnames = bucket.list_bucket_cname().cname
            except oss2.exceptions.OssError as exc:
                msg = f"list cname of bucket {info.name} failed: {exc}"
                raise DiscoveryError(msg, retryable=True) from exc

            for cname in cnames:
                if _has_fresh_certificate(cname):
                    continue
                yield OssCertificateRequest(bucket, cname.domain)

    def _list_buckets(self) -> Iterator[Any]:
        marker = ""
        while True:
            try:
                result = self._service.list_buckets(marker=marker)
            except oss2.exceptions.OssError as exc:
                msg = f"list oss buckets failed: {exc}"
                raise DiscoveryError(msg, retryable=True) from exc

            yield from result.buckets
            if not result.is_truncated:
                return
            marker = result.next_marker


def _has_fresh_certificate(cname: Any) -> bool:
    cert = cname.certificate
    if cert is None or not cert.cert_id:
        return False
    expires_at = parse_service_time(cert.valid_end_date)
    return expires_at is not None and is_fresh(expires_at)
