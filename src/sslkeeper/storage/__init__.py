"""Blob storage backends for certificate material and ACME account state."""

from sslkeeper.storage.base import BlobStorage
from sslkeeper.storage.registry import load_blob_storage

__all__ = ["BlobStorage", "load_blob_storage"]
