"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from sslkeeper.config import get_config

    acme = get_config().settings.acme
    print(acme.directory_url, acme.email)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

LETSENCRYPT_DIRECTORY = "https://acme-v02.api.letsencrypt.org/directory"

# Environment fallbacks recognised by the Alibaba Cloud CLI and acme.sh,
# in precedence order.
REGION_ENV_VARS = ("ALIBABACLOUD_REGION_ID", "ALICLOUD_REGION_ID", "REGION")
ACCESS_KEY_ID_ENV_VARS = ("Ali_Key", "ALIBABACLOUD_ACCESS_KEY_ID", "ALICLOUD_ACCESS_KEY_ID")
ACCESS_KEY_SECRET_ENV_VARS = (
    "Ali_Secret",
    "ALIBABACLOUD_ACCESS_KEY_SECRET",
    "ALICLOUD_ACCESS_KEY_SECRET",
)
SECURITY_TOKEN_ENV_VARS = ("ALIBABACLOUD_SECURITY_TOKEN", "ALICLOUD_SECURITY_TOKEN")


def _first_env(names: tuple[str, ...]) -> str | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CredentialsSettings:
    """Alibaba Cloud access key and default region."""

    access_key_id: str | None
    access_key_secret: str | None
    security_token: str | None
    region_id: str

    def __repr__(self) -> str:
        return (
            f"CredentialsSettings(access_key_id={self.access_key_id!r}, "
            f"access_key_secret='***', region_id={self.region_id!r})"
        )


def _build_credentials(data: dict | None) -> CredentialsSettings:
    d = data or {}
    return CredentialsSettings(
        access_key_id=d.get("access_key_id") or _first_env(ACCESS_KEY_ID_ENV_VARS),
        access_key_secret=d.get("access_key_secret") or _first_env(ACCESS_KEY_SECRET_ENV_VARS),
        security_token=d.get("security_token") or _first_env(SECURITY_TOKEN_ENV_VARS),
        region_id=d.get("region_id") or _first_env(REGION_ENV_VARS) or "cn-hangzhou",
    )


# ---------------------------------------------------------------------------
# Blob storage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OssStorageSettings:
    bucket: str | None
    endpoint: str | None
    key_prefix: str


@dataclass(frozen=True)
class FilesystemStorageSettings:
    root: str


@dataclass(frozen=True)
class StorageSettings:
    """Blob storage backend selection and per-backend options."""

    backend: str
    oss: OssStorageSettings
    filesystem: FilesystemStorageSettings


def _build_storage(data: dict | None) -> StorageSettings:
    d = data or {}
    o = d.get("oss") or {}
    f = d.get("filesystem") or {}
    return StorageSettings(
        backend=d.get("backend", "oss"),
        oss=OssStorageSettings(
            bucket=o.get("bucket"),
            endpoint=o.get("endpoint"),
            key_prefix=o.get("key_prefix", "ssl-keeper"),
        ),
        filesystem=FilesystemStorageSettings(
            root=f.get("root", "./ssl-keeper"),
        ),
    )


# ---------------------------------------------------------------------------
# Remote certificate store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RemoteStoreSettings:
    endpoint: str
    page_size: int


def _build_remote_store(data: dict | None) -> RemoteStoreSettings:
    d = data or {}
    return RemoteStoreSettings(
        endpoint=d.get("endpoint", "cas.aliyuncs.com"),
        page_size=d.get("page_size", 50),
    )


# ---------------------------------------------------------------------------
# ACME
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmeSettings:
    """ACME CA, account, and challenge handler configuration."""

    directory_url: str
    email: str | None
    key_type: str
    challenge_type: str
    challenge_handler: str
    challenge_handler_config: dict[str, Any]
    account_prefix: str
    storage_path: str | None
    proxy_url: str | None
    verify_ssl: bool
    timeout_seconds: int
    eab_kid: str | None
    eab_hmac_key: str | None


def _build_acme(data: dict | None) -> AcmeSettings:
    d = data or {}
    return AcmeSettings(
        directory_url=d.get("directory_url", LETSENCRYPT_DIRECTORY),
        email=d.get("email"),
        key_type=d.get("key_type", "rsa2048"),
        challenge_type=d.get("challenge_type", "dns-01"),
        challenge_handler=d.get("challenge_handler", "alidns"),
        challenge_handler_config=dict(d.get("challenge_handler_config") or {}),
        account_prefix=d.get("account_prefix", "acme"),
        storage_path=d.get("storage_path"),
        proxy_url=d.get("proxy_url"),
        verify_ssl=d.get("verify_ssl", True),
        timeout_seconds=d.get("timeout_seconds", 30),
        eab_kid=d.get("eab_kid"),
        eab_hmac_key=d.get("eab_hmac_key"),
    )


# ---------------------------------------------------------------------------
# Discovery agents
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CdnAgentSettings:
    endpoint: str
    tag: str | None
    resource_group_id: str | None
    page_size: int


@dataclass(frozen=True)
class OssAgentSettings:
    endpoint: str | None


@dataclass(frozen=True)
class LiveAgentSettings:
    endpoint: str
    region_id: str
    page_size: int


@dataclass(frozen=True)
class AgentsSettings:
    """Which discovery agents run, in order, and their options."""

    enabled: tuple[str, ...]
    queue_size: int
    cdn: CdnAgentSettings
    oss: OssAgentSettings
    live: LiveAgentSettings


def _build_agents(data: dict | None) -> AgentsSettings:
    d = data or {}
    c = d.get("cdn") or {}
    o = d.get("oss") or {}
    lv = d.get("live") or {}
    return AgentsSettings(
        enabled=tuple(d.get("enabled", ("cdn", "oss", "live"))),
        queue_size=d.get("queue_size", 16),
        cdn=CdnAgentSettings(
            endpoint=c.get("endpoint", "cdn.aliyuncs.com"),
            tag=c.get("tag") or None,
            resource_group_id=c.get("resource_group_id") or None,
            page_size=c.get("page_size", 500),
        ),
        oss=OssAgentSettings(
            endpoint=o.get("endpoint"),
        ),
        live=LiveAgentSettings(
            endpoint=lv.get("endpoint", "live.aliyuncs.com"),
            region_id=lv.get("region_id", "cn-hangzhou"),
            page_size=lv.get("page_size", 50),
        ),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeeperSettings:
    """Root of the typed settings tree."""

    credentials: CredentialsSettings
    storage: StorageSettings
    remote_store: RemoteStoreSettings
    acme: AcmeSettings
    agents: AgentsSettings
    logging: LoggingSettings


def build_settings(data: dict) -> KeeperSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`KeeperConfig` initialization after
    schema validation and environment-variable resolution.
    """
    return KeeperSettings(
        credentials=_build_credentials(data.get("credentials")),
        storage=_build_storage(data.get("storage")),
        remote_store=_build_remote_store(data.get("remote_store")),
        acme=_build_acme(data.get("acme")),
        agents=_build_agents(data.get("agents")),
        logging=_build_logging(data.get("logging")),
    )
