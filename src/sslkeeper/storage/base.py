"""Abstract base class for blob storage backends.

Blob storage is a flat key/value store of byte blobs.  The certificate
manager keeps ``{common_name}/key.pem``, ``cert.pem``, ``chain.pem``
and ``fullchain.pem`` there; the ACME issuance client keeps its account
key and registration next to them.

Backends are selected by ``storage.backend`` and built through
:meth:`BlobStorage.from_settings`; custom backends are loaded with the
``ext:`` prefix (see :mod:`sslkeeper.storage.registry`).
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sslkeeper.config.settings import KeeperSettings


class BlobStorage(abc.ABC):
    """Base class for all blob storage backends.

    Both operations raise :class:`~sslkeeper.core.errors.StorageError`
    on I/O failure.
    """

    @classmethod
    def from_settings(cls, settings: KeeperSettings) -> BlobStorage:
        """Build the backend from the full keeper settings.

        Optional hook.  Backends selected through ``storage.backend`` must
        override it; the registry rejects classes that do not.  Backends
        constructed directly never need it.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def read(self, key: str) -> bytes | None:
        """Return the blob stored under *key*, or ``None`` if absent."""

    @abc.abstractmethod
    def write(self, key: str, data: bytes) -> None:
        """Store *data* under *key*, replacing any previous blob."""
