"""Domain identity and certificate naming rules.

``domain_to_common_name`` decides which certificate covers a domain,
``match_domain`` checks coverage, and ``canonical_certificate_name``
derives the Remote Certificate Store name used as the deduplication key.
All self-managed names carry :data:`NAME_PREFIX`; reconciliation never
touches certificates without it.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

NAME_PREFIX = "sslkeeper-"

_WILDCARD = "*."


def domain_to_common_name(domain: str) -> str:
    """Return the certificate common name that should cover *domain*.

    Two-label domains (``example.com``) are returned unchanged; anything
    deeper has its leftmost label replaced by a wildcard
    (``cdn.example.com`` -> ``*.example.com``).  Only the first label is
    collapsed, so ``a.b.example.com`` becomes ``*.b.example.com``.
    """
    parts = domain.split(".")
    if len(parts) == 2:  # noqa: PLR2004
        return domain
    return _WILDCARD + ".".join(parts[1:])


def match_domain(common_name: str, domain: str) -> bool:
    """Return whether a certificate for *common_name* covers *domain*.

    A wildcard covers exactly one extra label:
    ``*.example.com`` matches ``foo.example.com`` but not
    ``foo.bar.example.com``.
    """
    if domain == common_name:
        return True

    return (
        common_name.startswith(_WILDCARD)
        and domain.endswith(common_name[1:])
        and domain.count(".") == common_name.count(".")
    )


def short_md5(data: bytes) -> str:
    """Return the first 12 hex characters of the MD5 digest of *data*.

    Used only as a short content fingerprint, never for security.
    """
    return hashlib.md5(data, usedforsecurity=False).hexdigest()[:12]


def canonical_certificate_name(
    common_name: str,
    expires_at: datetime,
    certificate: bytes,
) -> str:
    """Build the Remote Certificate Store name for a certificate.

    Format: ``sslkeeper-<cn>-<YYYYMMDD><md5[:12]>`` where ``<cn>`` has its
    wildcard marker removed and dots replaced by underscores.  Identical
    certificate bytes always yield the same name.
    """
    label = common_name.replace(_WILDCARD, "", 1).replace(".", "_")
    return f"{NAME_PREFIX}{label}-{expires_at.strftime('%Y%m%d')}{short_md5(certificate)}"


def is_self_managed(name: str | None) -> bool:
    """Return whether a Remote Store entry *name* was created by SSLKEEPER."""
    return bool(name) and name.startswith(NAME_PREFIX)
