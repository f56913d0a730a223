"""Certificate value object, PEM helpers, and the certificate manager.

Exports the :class:`Certificate` value type and the
:class:`CertificateManager` that resolves a usable certificate for a
common name and reconciles the Remote Certificate Store.
"""

from sslkeeper.certs.certificate import Certificate, CertificateMetadata
from sslkeeper.certs.manager import CertificateManager

__all__ = [
    "Certificate",
    "CertificateManager",
    "CertificateMetadata",
]
