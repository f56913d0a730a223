"""Alibaba Cloud OSS blob storage.

Blobs live in a single bucket under ``{key_prefix}/{key}``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import oss2

from sslkeeper.clients import oss_auth, oss_endpoint
from sslkeeper.core.errors import StorageError
from sslkeeper.storage.base import BlobStorage

if TYPE_CHECKING:
    from sslkeeper.config.settings import KeeperSettings

log = logging.getLogger(__name__)


class OssBlobStorage(BlobStorage):
    """Blob storage backed by an OSS bucket.

    Parameters
    ----------
    bucket:
        An ``oss2.Bucket`` (or compatible object).
    key_prefix:
        Prefix prepended to every key, without a trailing slash.

    """

    def __init__(self, bucket: Any, key_prefix: str = "ssl-keeper") -> None:
        self._bucket = bucket
        self._prefix = key_prefix.strip("/")

    @classmethod
    def from_settings(cls, settings: KeeperSettings) -> OssBlobStorage:
        oss = settings.storage.oss
        endpoint = oss.endpoint or oss_endpoint(settings.credentials.region_id)
        bucket = oss2.Bucket(oss_auth(settings.credentials), endpoint, oss.bucket)
        log.info("OSS blob storage: bucket=%s prefix=%s", oss.bucket, oss.key_prefix)
        return cls(bucket, oss.key_prefix)

    def _object_key(self, key: str) -> str:
        return f"{self._prefix}/{key}" if self._prefix else key

    def read(self, key: str) -> bytes | None:
        object_key = self._object_key(key)
        try:
            return self._bucket.get_object(object_key).read()
        except oss2.exceptions.NoSuchKey:
            return None
        except oss2.exceptions.OssError as exc:
            msg = f"Failed to read oss object '{object_key}': {exc}"
            raise StorageError(msg, retryable=True) from exc

    def write(self, key: str, data: bytes) -> None:
        object_key = self._object_key(key)
        try:
            self._bucket.put_object(object_key, data)
        except oss2.exceptions.OssError as exc:
            msg = f"Failed to write oss object '{object_key}': {exc}"
            raise StorageError(msg, retryable=True) from exc
