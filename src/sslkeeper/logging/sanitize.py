"""Sensitive data sanitization for log output.

Provides :func:`sanitize_for_logs`, which redacts PEM bodies (private
keys above all) from strings and data structures before they reach a
log handler.  BEGIN/END markers are kept so the kind of object stays
visible.
"""

from __future__ import annotations

import re
from typing import Any

# Regex matching the base64 body inside PEM blocks
_PEM_BODY_RE = re.compile(
    r"(-----BEGIN [A-Z0-9 ]+-----)"
    r"([\s\S]*?)"
    r"(-----END [A-Z0-9 ]+-----)",
)

# Mapping keys whose values are always secret
_SECRET_KEYS = frozenset({"access_key_secret", "security_token", "eab_hmac_key", "private_key"})


def sanitize_pem(pem: str) -> str:
    """Replace the base64 body of PEM blocks with ``[REDACTED]``."""

    def _redact(m: re.Match[str]) -> str:
        return f"{m.group(1)}\n[REDACTED]\n{m.group(3)}"

    return _PEM_BODY_RE.sub(_redact, pem)


def sanitize_for_logs(data: Any) -> Any:
    """Recursively sanitize sensitive material in *data*.

    Handles dicts, lists, tuples, strings, and bytes.  Non-sensitive
    data passes through unchanged.
    """
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if k in _SECRET_KEYS and v else sanitize_for_logs(v)
            for k, v in data.items()
        }

    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)

    if isinstance(data, bytes):
        if b"-----BEGIN " in data:
            return sanitize_pem(data.decode("ascii", errors="replace"))
        return data

    if isinstance(data, str):
        if "-----BEGIN " in data:
            return sanitize_pem(data)
        return data

    return data
