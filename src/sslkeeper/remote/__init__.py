"""Remote Certificate Store adapters."""

from sslkeeper.remote.base import RemoteCertificateEntry, RemoteCertificateStore

__all__ = ["RemoteCertificateEntry", "RemoteCertificateStore"]
