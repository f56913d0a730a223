"""Blob storage registry.

Loads the configured blob storage backend by name.  Supports the
built-in backends (``oss``, ``filesystem``) and custom backends via the
``ext:`` prefix.

Usage::

    from sslkeeper.storage.registry import load_blob_storage

    storage = load_blob_storage(settings)
    storage.write("example.com/cert.pem", pem)
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from sslkeeper.core.errors import StorageError
from sslkeeper.storage.base import BlobStorage

if TYPE_CHECKING:
    from sslkeeper.config.settings import KeeperSettings

log = logging.getLogger(__name__)

# Maps config string -> (module_path, class_name)
_BUILTIN_BACKENDS: dict[str, tuple[str, str]] = {
    "oss": ("sslkeeper.storage.oss", "OssBlobStorage"),
    "filesystem": ("sslkeeper.storage.filesystem", "FilesystemBlobStorage"),
}


def load_blob_storage(settings: KeeperSettings) -> BlobStorage:
    """Load and return the configured blob storage backend.

    Raises
    ------
    StorageError
        If the backend cannot be loaded.

    """
    backend_name = settings.storage.backend

    if backend_name in _BUILTIN_BACKENDS:
        mod_path, cls_name = _BUILTIN_BACKENDS[backend_name]
        label = backend_name
    elif backend_name.startswith("ext:"):
        mod_path, _, cls_name = backend_name[4:].rpartition(".")
        label = backend_name
        if not mod_path:
            msg = (
                f"Invalid external storage backend '{backend_name[4:]}': must be "
                "fully qualified (e.g. 'mypackage.module.ClassName')"
            )
            raise StorageError(msg)
    else:
        msg = (
            f"Unknown storage backend '{backend_name}'; "
            f"built-in options: {sorted(_BUILTIN_BACKENDS)}. "
            "Use 'ext:mypackage.module.ClassName' for custom backends."
        )
        raise StorageError(msg)

    try:
        module = importlib.import_module(mod_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load storage backend '{label}': {exc}"
        raise StorageError(msg) from exc

    _validate_class(cls, label)
    backend = cls.from_settings(settings)
    log.info("Loaded blob storage backend: %s", label)
    return backend


def _validate_class(cls: type, label: str) -> None:
    """Verify that a backend class has the required methods."""
    if not (isinstance(cls, type) and issubclass(cls, BlobStorage)):
        msg = f"Storage backend '{label}' is not a subclass of BlobStorage"
        raise StorageError(msg)

    for method_name in ("read", "write"):
        method = getattr(cls, method_name, None)
        if method is None or getattr(method, "__isabstractmethod__", False):
            msg = f"Storage backend '{label}' does not implement '{method_name}()'"
            raise StorageError(msg)

    if cls.from_settings.__func__ is BlobStorage.from_settings.__func__:
        msg = f"Storage backend '{label}' does not implement 'from_settings()'"
        raise StorageError(msg)
