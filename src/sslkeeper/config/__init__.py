"""Configuration subsystem for SSLKEEPER.

Public API::

    from sslkeeper.config import get_config, KeeperConfig

    # At startup (CLI only):
    KeeperConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    bucket = cfg.settings.storage.oss.bucket   # typed access
    zones = cfg.get("acme.challenge_handler_config.zones")  # dynamic dot-path
"""

from sslkeeper.config.keeper_config import (
    ConfigValidationError,
    KeeperConfig,
    get_config,
)
from sslkeeper.config.settings import (
    AcmeSettings,
    AgentsSettings,
    CdnAgentSettings,
    CredentialsSettings,
    FilesystemStorageSettings,
    KeeperSettings,
    LiveAgentSettings,
    LoggingSettings,
    OssAgentSettings,
    OssStorageSettings,
    RemoteStoreSettings,
    StorageSettings,
    build_settings,
)

__all__ = [
    "AcmeSettings",
    "AgentsSettings",
    "CdnAgentSettings",
    "ConfigValidationError",
    "CredentialsSettings",
    "FilesystemStorageSettings",
    "KeeperConfig",
    "KeeperSettings",
    "LiveAgentSettings",
    "LoggingSettings",
    "OssAgentSettings",
    "OssStorageSettings",
    "RemoteStoreSettings",
    "StorageSettings",
    "build_settings",
    "get_config",
]
