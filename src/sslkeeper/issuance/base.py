"""Abstract base class for issuance clients.

An issuance client obtains a new certificate for one domain, optionally
reusing an existing private key, and returns the PEM material the
certificate manager persists to blob storage.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass


@dataclass(frozen=True)
class IssuedMaterial:
    """Result of a successful issuance.

    Attributes
    ----------
    private_key:
        PEM private key matching the certificate.
    certificate:
        PEM leaf certificate.
    issuer_certificate:
        PEM issuer chain (intermediates), possibly empty.

    """

    private_key: bytes
    certificate: bytes
    issuer_certificate: bytes


class IssuanceClient(abc.ABC):
    """Base class for issuance client implementations."""

    @abc.abstractmethod
    def obtain(self, domain: str, private_key: bytes | None = None) -> IssuedMaterial:
        """Obtain a certificate for *domain*.

        Parameters
        ----------
        domain:
            Common name to certify; may be a wildcard.
        private_key:
            Existing PEM private key to reuse, or ``None`` to generate a
            fresh one.

        Raises
        ------
        IssuanceError
            On any issuance failure.

        """

    def startup_check(self) -> None:
        """Optional startup initialisation.  Default is a no-op."""

    def close(self) -> None:
        """Release client resources.  Default is a no-op."""
