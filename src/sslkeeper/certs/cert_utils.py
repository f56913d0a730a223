"""Shared PEM / X.509 helpers.

Parsing, chain splitting, CSR construction for key reuse, and the
freshness rule shared by the certificate manager and every discovery
agent.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import NameOID

from sslkeeper.core.errors import CertificateParseError

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

# A certificate is renewed unless it has strictly more than this left.
RENEW_BEFORE = timedelta(days=7)

_PEM_CERT_RE = re.compile(
    rb"-----BEGIN CERTIFICATE-----\r?\n.*?-----END CERTIFICATE-----\r?\n?",
    re.DOTALL,
)

# ---------------------------------------------------------------------------
# Freshness
# ---------------------------------------------------------------------------


def is_fresh(expires_at: datetime, now: datetime | None = None) -> bool:
    """Return whether a certificate expiring at *expires_at* can be reused.

    *now* defaults to the current wall-clock time and is read on every
    call.
    """
    if now is None:
        now = datetime.now(UTC)
    return expires_at - now > RENEW_BEFORE


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_certificate(pem: bytes) -> x509.Certificate:
    """Parse the first certificate in *pem*.

    Raises
    ------
    CertificateParseError
        If *pem* holds no parseable certificate.

    """
    if not pem:
        msg = "no certificate data"
        raise CertificateParseError(msg)

    match = _PEM_CERT_RE.search(pem)
    if match is None:
        msg = "failed to decode certificate: no CERTIFICATE PEM block"
        raise CertificateParseError(msg)

    try:
        return x509.load_pem_x509_certificate(match.group(0))
    except ValueError as exc:
        msg = f"failed to parse certificate: {exc}"
        raise CertificateParseError(msg) from exc


def split_pem_chain(chain: bytes) -> tuple[bytes, bytes]:
    """Split a PEM chain into ``(leaf, issuer_chain)``.

    The leaf is the first certificate block; the issuer chain is every
    following block, concatenated unchanged.
    """
    blocks = _PEM_CERT_RE.findall(chain)
    if not blocks:
        msg = "failed to split certificate chain: no CERTIFICATE PEM block"
        raise CertificateParseError(msg)

    leaf = blocks[0] if blocks[0].endswith(b"\n") else blocks[0] + b"\n"
    return leaf, b"".join(blocks[1:])


def subject_common_name(cert: x509.Certificate) -> str | None:
    """Return the subject CN of *cert*, or ``None`` if it has none."""
    attrs = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        return None
    value = attrs[0].value
    return value.decode() if isinstance(value, bytes) else value


def subject_alt_names(cert: x509.Certificate) -> tuple[str, ...]:
    """Return the DNS names in the SAN extension of *cert*."""
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return ()
    return tuple(san.value.get_values_for_type(x509.DNSName))


# ---------------------------------------------------------------------------
# Keys and CSRs
# ---------------------------------------------------------------------------


def load_private_key(pem: bytes) -> PrivateKeyTypes:
    """Load an unencrypted PEM private key."""
    try:
        return serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError) as exc:
        msg = f"failed to decode private key: {exc}"
        raise CertificateParseError(msg) from exc


def build_csr(private_key_pem: bytes, domain: str) -> bytes:
    """Build a DER-encoded CSR for *domain* signed by an existing key.

    Lets a renewal keep the same key pair as the certificate it replaces.
    """
    key = load_private_key(private_key_pem)
    csr = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domain)]))
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(domain)]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )
    return csr.public_bytes(serialization.Encoding.DER)
