"""Alibaba Cloud client configuration helpers.

Every OpenAPI SDK client (CAS, CDN, Live, AliDNS) is built from the same
credentials with a product-specific endpoint; OSS clients use ``oss2``
authentication objects instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import oss2
from alibabacloud_tea_openapi import models as open_api_models

if TYPE_CHECKING:
    from sslkeeper.config.settings import CredentialsSettings


def openapi_config(
    credentials: CredentialsSettings,
    endpoint: str,
    *,
    region_id: str | None = None,
) -> open_api_models.Config:
    """Build an OpenAPI client ``Config`` for *endpoint*."""
    return open_api_models.Config(
        access_key_id=credentials.access_key_id,
        access_key_secret=credentials.access_key_secret,
        security_token=credentials.security_token,
        region_id=region_id or credentials.region_id,
        endpoint=endpoint,
    )


def oss_auth(credentials: CredentialsSettings) -> oss2.Auth | oss2.StsAuth:
    if credentials.security_token:
        return oss2.StsAuth(
            credentials.access_key_id,
            credentials.access_key_secret,
            credentials.security_token,
        )
    return oss2.Auth(credentials.access_key_id, credentials.access_key_secret)


def oss_endpoint(region_id: str) -> str:
    """Return the public OSS endpoint for *region_id*."""
    return f"https://oss-{region_id}.aliyuncs.com"
