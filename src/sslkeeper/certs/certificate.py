"""Certificate value object.

A :class:`Certificate` is either full PEM material (read from blob
storage or freshly issued) or a pointer to an entry already present in
the Remote Certificate Store (id, name, and expiry only).  Parsed
metadata and the canonical name are memoized on the instance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sslkeeper.certs import cert_utils
from sslkeeper.core import naming
from sslkeeper.core.errors import CertificateParseError

if TYPE_CHECKING:
    from datetime import datetime

    from sslkeeper.remote.base import RemoteCertificateEntry


@dataclass(frozen=True)
class CertificateMetadata:
    """Fields parsed from a leaf certificate in a single pass."""

    subject_common_name: str | None
    subject_alt_names: tuple[str, ...]
    expires_at: datetime


@dataclass(eq=False)
class Certificate:
    """A TLS certificate for one common name.

    Parameters
    ----------
    common_name:
        Literal domain or single-level wildcard (``*.example.com``).
    private_key:
        PEM private key, if held.
    certificate:
        PEM leaf certificate, if held.
    issuer_certificate:
        PEM issuer chain, if held.
    remote_id:
        Remote Certificate Store id once uploaded or found.
    updated:
        ``True`` when the certificate was issued during this run.

    """

    common_name: str
    private_key: bytes | None = None
    certificate: bytes | None = None
    issuer_certificate: bytes | None = None
    remote_id: int | None = None
    updated: bool = False
    _canonical_name: str | None = field(default=None, repr=False)
    _expires_at: datetime | None = field(default=None, repr=False)
    _metadata: CertificateMetadata | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.common_name:
            msg = "Certificate common_name must not be empty"
            raise ValueError(msg)

    @classmethod
    def from_remote(
        cls,
        common_name: str,
        entry: RemoteCertificateEntry,
        expires_at: datetime,
    ) -> Certificate:
        """Build a pointer to an existing Remote Certificate Store entry.

        The entry's name becomes the canonical name as-is; no PEM
        material is attached.
        """
        return cls(
            common_name=common_name,
            remote_id=entry.id,
            _canonical_name=entry.name,
            _expires_at=expires_at,
        )

    # -- derived attributes ------------------------------------------------

    @property
    def metadata(self) -> CertificateMetadata:
        """Parsed leaf metadata; parsed once, then memoized."""
        if self._metadata is None:
            if not self.certificate:
                msg = f"no certificate material held for '{self.common_name}'"
                raise CertificateParseError(msg)
            cert = cert_utils.parse_certificate(self.certificate)
            self._metadata = CertificateMetadata(
                subject_common_name=cert_utils.subject_common_name(cert),
                subject_alt_names=cert_utils.subject_alt_names(cert),
                expires_at=cert.not_valid_after_utc,
            )
        return self._metadata

    @property
    def expires_at(self) -> datetime:
        if self._expires_at is None:
            self._expires_at = self.metadata.expires_at
        return self._expires_at

    @property
    def canonical_name(self) -> str:
        """Remote Certificate Store name, computed once."""
        if self._canonical_name is None:
            self._canonical_name = naming.canonical_certificate_name(
                self.common_name,
                self.expires_at,
                self.certificate or b"",
            )
        return self._canonical_name

    @canonical_name.setter
    def canonical_name(self, value: str) -> None:
        self._canonical_name = value

    @property
    def fullchain(self) -> bytes:
        return (self.certificate or b"") + (self.issuer_certificate or b"")

    @property
    def has_material(self) -> bool:
        return bool(self.certificate and self.private_key)

    def is_fresh(self) -> bool:
        return cert_utils.is_fresh(self.expires_at)

    def match_domain(self, domain: str) -> bool:
        return naming.match_domain(self.common_name, domain)
