"""Certificate issuance via ACME."""

from sslkeeper.issuance.base import IssuanceClient, IssuedMaterial

__all__ = ["IssuanceClient", "IssuedMaterial"]
