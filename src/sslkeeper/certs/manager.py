"""Certificate manager.

Resolves a usable certificate for a common name, trying in order:

1. the in-process cache,
2. the Remote Certificate Store (an already uploaded, fresh certificate),
3. blob storage (a fresh stored certificate, or a renewal issued with
   the stored key),

and uploads anything that came from blob storage to the Remote
Certificate Store.  After a run it prunes duplicate and expired
self-managed entries from the Remote Certificate Store.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sslkeeper.certs import cert_utils
from sslkeeper.certs.certificate import Certificate
from sslkeeper.core.errors import KeeperError
from sslkeeper.core.naming import is_self_managed
from sslkeeper.core.types import CertificateStatus, OrderType

if TYPE_CHECKING:
    from datetime import datetime

    from sslkeeper.issuance.base import IssuanceClient
    from sslkeeper.remote.base import RemoteCertificateEntry, RemoteCertificateStore
    from sslkeeper.storage.base import BlobStorage

log = logging.getLogger(__name__)

KEY_BLOB = "key.pem"
CERT_BLOB = "cert.pem"
CHAIN_BLOB = "chain.pem"
FULLCHAIN_BLOB = "fullchain.pem"


class CertificateManager:
    """Resolve, persist, upload, and reconcile certificates.

    Parameters
    ----------
    remote_store:
        Remote Certificate Store adapter.
    storage:
        Blob storage for certificate material.
    issuer:
        Issuance client used when no fresh certificate exists.

    """

    def __init__(
        self,
        remote_store: RemoteCertificateStore,
        storage: BlobStorage,
        issuer: IssuanceClient,
    ) -> None:
        self._remote = remote_store
        self._storage = storage
        self._issuer = issuer
        self._cache: dict[str, Certificate] = {}

    # -- resolution --------------------------------------------------------

    def get_certificate(self, common_name: str) -> Certificate:
        """Return a usable certificate for *common_name*.

        Within one manager instance the same common name always resolves
        to the same :class:`Certificate` object.

        Raises
        ------
        StorageError, RemoteStoreError, IssuanceError, CertificateParseError
            Propagated unchanged; nothing is retried.

        """
        cached = self._cache.get(common_name)
        if cached is not None:
            return cached

        cert = self.search_remote_store(common_name)
        if cert is None:
            cert = self.get_certificate_from_storage(common_name)
            if cert.remote_id is None:
                try:
                    self.upload_to_remote_store(cert)
                except Exception:
                    log.warning(
                        "Upload of %s to the remote store failed; continuing",
                        common_name,
                        exc_info=True,
                    )

        self._cache[common_name] = cert
        return cert

    def search_remote_store(self, common_name: str) -> Certificate | None:
        """Find a fresh uploaded certificate whose SANs list *common_name*."""
        entries = self._remote.search(
            order_type=OrderType.UPLOAD,
            status=CertificateStatus.ISSUED,
            keyword=common_name,
        )
        for entry in entries:
            if common_name not in entry.domains:
                continue
            expires_at = self._entry_expiry(entry)
            if not cert_utils.is_fresh(expires_at):
                log.debug(
                    "Remote certificate %s (%s) expires %s; not reused",
                    entry.name,
                    entry.id,
                    expires_at,
                )
                continue
            log.info("Reusing remote certificate %s (%s) for %s", entry.name, entry.id, common_name)
            return Certificate.from_remote(common_name, entry, expires_at)
        return None

    def _entry_expiry(self, entry: RemoteCertificateEntry) -> datetime:
        if entry.expires_at is not None:
            return entry.expires_at
        pem = self._remote.get_detail(entry.id)
        return cert_utils.parse_certificate(pem).not_valid_after_utc

    def get_certificate_from_storage(self, common_name: str) -> Certificate:
        """Load *common_name* from blob storage, renewing it if stale.

        A renewal reuses the stored private key when there is one and
        writes all four blobs; any write failure fails the call.
        """
        cert = Certificate(
            common_name=common_name,
            private_key=self._storage.read(f"{common_name}/{KEY_BLOB}"),
            certificate=self._storage.read(f"{common_name}/{CERT_BLOB}"),
            issuer_certificate=self._storage.read(f"{common_name}/{CHAIN_BLOB}"),
        )

        if cert.has_material and cert.is_fresh():
            log.info("Using stored certificate for %s (expires %s)", common_name, cert.expires_at)
            return cert

        log.info("Issuing certificate for %s", common_name)
        material = self._issuer.obtain(common_name, private_key=cert.private_key)

        issued = Certificate(
            common_name=common_name,
            private_key=material.private_key,
            certificate=material.certificate,
            issuer_certificate=material.issuer_certificate,
            updated=True,
        )

        self._storage.write(f"{common_name}/{KEY_BLOB}", issued.private_key)
        self._storage.write(f"{common_name}/{CERT_BLOB}", issued.certificate)
        self._storage.write(f"{common_name}/{CHAIN_BLOB}", issued.issuer_certificate)
        self._storage.write(f"{common_name}/{FULLCHAIN_BLOB}", issued.fullchain)
        log.info(
            "Stored new certificate for %s covering %s (expires %s)",
            common_name,
            ", ".join(issued.metadata.subject_alt_names),
            issued.expires_at,
        )
        return issued

    def close(self) -> None:
        """Release the issuance client."""
        self._issuer.close()

    def upload_to_remote_store(self, cert: Certificate) -> None:
        """Upload *cert* under its canonical name and record the new id."""
        cert.remote_id = self._remote.upload(
            cert.canonical_name,
            cert.fullchain,
            cert.private_key or b"",
        )

    # -- reconciliation ----------------------------------------------------

    def reconcile_expired(self) -> list[int]:
        """Delete every expired self-managed certificate; return their ids."""
        deleted: list[int] = []
        for entry in self._remote.search(
            order_type=OrderType.UPLOAD,
            status=CertificateStatus.EXPIRED,
        ):
            if not is_self_managed(entry.name):
                continue
            if self._delete(entry, "expired"):
                deleted.append(entry.id)
        return deleted

    def reconcile_duplicates(self) -> list[int]:
        """Keep one certificate per subject CN; return the deleted ids.

        Among self-managed certificates sharing a subject common name,
        the one with the latest expiry survives; on a tie the first one
        listed survives.  Certificates without a subject common name are
        never treated as duplicates.
        """
        keepers: dict[str, tuple[RemoteCertificateEntry, datetime]] = {}
        losers: list[RemoteCertificateEntry] = []

        for entry in self._remote.search(order_type=OrderType.UPLOAD):
            if not is_self_managed(entry.name):
                continue
            try:
                parsed = cert_utils.parse_certificate(self._remote.get_detail(entry.id))
            except KeeperError:
                log.warning(
                    "Skipping certificate %s (%s): detail unavailable",
                    entry.name,
                    entry.id,
                    exc_info=True,
                )
                continue

            subject = cert_utils.subject_common_name(parsed)
            if not subject:
                log.warning(
                    "Skipping certificate %s (%s): no subject common name",
                    entry.name,
                    entry.id,
                )
                continue

            expires_at = parsed.not_valid_after_utc
            current = keepers.get(subject)
            if current is None:
                keepers[subject] = (entry, expires_at)
            elif expires_at > current[1]:
                losers.append(current[0])
                keepers[subject] = (entry, expires_at)
            else:
                losers.append(entry)

        return [entry.id for entry in losers if self._delete(entry, "duplicate")]

    def _delete(self, entry: RemoteCertificateEntry, reason: str) -> bool:
        try:
            self._remote.delete(entry.id)
        except KeeperError:
            log.warning(
                "Failed to delete %s certificate %s (%s)",
                reason,
                entry.name,
                entry.id,
                exc_info=True,
            )
            return False
        log.info(
            "Deleted %s certificate %s (%s)",
            reason,
            entry.name,
            ", ".join(entry.domains),
        )
        return True
