"""Alibaba Cloud Certificate Management Service (CAS) adapter.

Wraps the ``alibabacloud_cas20200407`` SDK client behind
:class:`RemoteCertificateStore`.  SDK failures are wrapped in
:class:`RemoteStoreError`.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from alibabacloud_cas20200407 import models as cas_models
from alibabacloud_cas20200407.client import Client as CasClient

from sslkeeper.clients import openapi_config
from sslkeeper.core.errors import RemoteStoreError
from sslkeeper.remote.base import RemoteCertificateEntry, RemoteCertificateStore

if TYPE_CHECKING:
    from sslkeeper.config.settings import CredentialsSettings, RemoteStoreSettings
    from sslkeeper.core.types import CertificateStatus, OrderType

log = logging.getLogger(__name__)


class CasCertificateStore(RemoteCertificateStore):
    """Remote Certificate Store backed by Alibaba Cloud CAS.

    Parameters
    ----------
    client:
        A ``alibabacloud_cas20200407`` client (or compatible object).
    page_size:
        ``ShowSize`` used when listing certificates.

    """

    def __init__(self, client: Any, *, page_size: int = 50) -> None:
        self._client = client
        self._page_size = page_size

    @classmethod
    def from_settings(
        cls,
        credentials: CredentialsSettings,
        settings: RemoteStoreSettings,
    ) -> CasCertificateStore:
        client = CasClient(openapi_config(credentials, settings.endpoint))
        return cls(client, page_size=settings.page_size)

    def search(
        self,
        order_type: OrderType | str,
        status: CertificateStatus | str | None = None,
        keyword: str | None = None,
    ) -> list[RemoteCertificateEntry]:
        entries: list[RemoteCertificateEntry] = []
        page = 1
        while True:
            request = cas_models.ListUserCertificateOrderRequest(
                order_type=str(order_type),
                status=str(status) if status else None,
                keyword=keyword,
                current_page=page,
                show_size=self._page_size,
            )
            try:
                body = self._client.list_user_certificate_order(request).body
            except Exception as exc:  # noqa: BLE001
                msg = f"Failed to list {order_type} certificates (page {page}): {exc}"
                raise RemoteStoreError(msg, retryable=True) from exc

            orders = body.certificate_order_list or []
            entries.extend(_entry_from_order(order) for order in orders)

            total = body.total_count or 0
            if not orders or page * self._page_size >= total:
                break
            page += 1

        log.debug(
            "CAS search order_type=%s status=%s keyword=%s: %d result(s)",
            order_type,
            status,
            keyword,
            len(entries),
        )
        return entries

    def get_detail(self, cert_id: int) -> bytes:
        request = cas_models.GetUserCertificateDetailRequest(
            cert_id=cert_id,
            cert_filter=False,
        )
        try:
            body = self._client.get_user_certificate_detail(request).body
        except Exception as exc:  # noqa: BLE001
            msg = f"Failed to fetch certificate detail for id {cert_id}: {exc}"
            raise RemoteStoreError(msg, retryable=True) from exc

        if not body.cert:
            msg = f"Certificate detail for id {cert_id} carries no certificate body"
            raise RemoteStoreError(msg)
        return body.cert.encode()

    def upload(self, name: str, cert: bytes, key: bytes) -> int:
        request = cas_models.UploadUserCertificateRequest(
            name=name,
            cert=cert.decode(),
            key=key.decode(),
        )
        try:
            body = self._client.upload_user_certificate(request).body
        except Exception as exc:  # noqa: BLE001
            msg = f"Failed to upload certificate '{name}': {exc}"
            raise RemoteStoreError(msg, retryable=True) from exc

        try:
            cert_id = int(body.cert_id)
        except (TypeError, ValueError) as exc:
            msg = f"Upload of certificate '{name}' returned no usable id: {body.cert_id!r}"
            raise RemoteStoreError(msg) from exc

        log.info("Uploaded certificate %s to CAS as id %s", name, cert_id)
        return cert_id

    def delete(self, cert_id: int) -> None:
        request = cas_models.DeleteUserCertificateRequest(cert_id=cert_id)
        try:
            self._client.delete_user_certificate(request)
        except Exception as exc:  # noqa: BLE001
            msg = f"Failed to delete certificate id {cert_id}: {exc}"
            raise RemoteStoreError(msg, retryable=True) from exc


def _entry_from_order(order: Any) -> RemoteCertificateEntry:
    """Convert a ``CertificateOrderList`` item to an entry."""
    sans = tuple(s.strip() for s in (order.sans or "").split(",") if s.strip())
    expires_at = None
    if order.cert_end_time:
        expires_at = datetime.fromtimestamp(order.cert_end_time / 1000, UTC)
    return RemoteCertificateEntry(
        id=int(order.certificate_id),
        name=order.name or "",
        domains=sans,
        status=order.status,
        expires_at=expires_at,
    )
