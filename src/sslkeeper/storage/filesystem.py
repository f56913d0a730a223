"""Local filesystem blob storage, for single-host runs and tests."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from sslkeeper.core.errors import StorageError
from sslkeeper.storage.base import BlobStorage

if TYPE_CHECKING:
    from sslkeeper.config.settings import KeeperSettings


class FilesystemBlobStorage(BlobStorage):
    """Blob storage rooted at a local directory.

    Keys map to relative paths; keys that would escape the root are
    rejected.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    @classmethod
    def from_settings(cls, settings: KeeperSettings) -> FilesystemBlobStorage:
        return cls(settings.storage.filesystem.root)

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root):
            msg = f"Blob key '{key}' escapes storage root"
            raise StorageError(msg)
        return path

    def read(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            msg = f"Failed to read '{path}': {exc}"
            raise StorageError(msg) from exc

    def write(self, key: str, data: bytes) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            msg = f"Failed to write '{path}': {exc}"
            raise StorageError(msg) from exc
