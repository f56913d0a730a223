"""Abstract base class for Remote Certificate Stores.

A Remote Certificate Store is the cloud-side certificate repository
that edge services reference certificates from by id.  The certificate
manager searches it for reusable certificates, uploads newly obtained
ones, and prunes duplicate and expired self-managed entries.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from sslkeeper.core.types import CertificateStatus, OrderType


@dataclass(frozen=True)
class RemoteCertificateEntry:
    """One certificate listed by the Remote Certificate Store.

    Attributes
    ----------
    id:
        Store-assigned certificate id.
    name:
        Display name; self-managed entries carry the ``sslkeeper-`` prefix.
    domains:
        Subject alternative names reported by the store.
    status:
        Store-reported lifecycle status (``ISSUED``, ``EXPIRED``, ...).
    expires_at:
        Expiry reported in the listing, or ``None`` when the listing
        does not carry one.

    """

    id: int
    name: str
    domains: tuple[str, ...]
    status: str | None = None
    expires_at: datetime | None = None


class RemoteCertificateStore(abc.ABC):
    """Base class for Remote Certificate Store adapters.

    Every operation raises :class:`~sslkeeper.core.errors.RemoteStoreError`
    on failure.
    """

    @abc.abstractmethod
    def search(
        self,
        order_type: OrderType | str,
        status: CertificateStatus | str | None = None,
        keyword: str | None = None,
    ) -> list[RemoteCertificateEntry]:
        """List certificates matching the filters, across all pages."""

    @abc.abstractmethod
    def get_detail(self, cert_id: int) -> bytes:
        """Return the PEM certificate body of entry *cert_id*."""

    @abc.abstractmethod
    def upload(self, name: str, cert: bytes, key: bytes) -> int:
        """Upload a certificate and private key; return the new id."""

    @abc.abstractmethod
    def delete(self, cert_id: int) -> None:
        """Delete entry *cert_id*."""
