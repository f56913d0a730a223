"""Logging subsystem for SSLKEEPER.

Public API::

    from sslkeeper.logging import configure_logging, request_context

    configure_logging(settings.logging)
    with request_context(service="cdn", domain="cdn.example.com"):
        ...
"""

from sslkeeper.logging.context import request_context
from sslkeeper.logging.setup import configure_logging

__all__ = ["configure_logging", "request_context"]
