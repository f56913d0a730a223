"""Enumerated types for the Remote Certificate Store and services.

All enums inherit from ``StrEnum`` so their ``.value`` is the plain
string the Alibaba Cloud APIs expect.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Remote Certificate Store
# ---------------------------------------------------------------------------


class OrderType(StrEnum):
    UPLOAD = "UPLOAD"
    CPACK = "CPACK"
    BUY = "BUY"


class CertificateStatus(StrEnum):
    ISSUED = "ISSUED"
    WILLEXPIRED = "WILLEXPIRED"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


class ServiceName(StrEnum):
    CDN = "cdn"
    OSS = "oss"
    LIVE = "live"
