"""Structured error types for SSLKEEPER.

Every collaborator boundary (blob storage, remote certificate store,
issuance, discovery, installation) raises a subclass of
:class:`KeeperError`, wrapping the underlying SDK exception with
``raise ... from exc``.  The keeper is the top-level boundary: it logs
each failure with its service/domain context and moves on.
"""

from __future__ import annotations


class KeeperError(Exception):
    """Base class for all SSLKEEPER failures.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient and a later run may succeed.

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


class StorageError(KeeperError):
    """Blob storage read or write failed."""


class RemoteStoreError(KeeperError):
    """Remote certificate store query, upload, or deletion failed."""


class IssuanceError(KeeperError):
    """Certificate issuance failed (validation, rate limit, protocol)."""


class CertificateParseError(KeeperError):
    """Stored or fetched PEM/X.509 material is malformed."""


class InstallError(KeeperError):
    """Pushing a certificate to a cloud service failed."""


class DiscoveryError(KeeperError):
    """A discovery agent failed while enumerating domains."""
