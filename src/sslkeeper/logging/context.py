"""Per-request logging context.

The keeper wraps the handling of each certificate request in
:func:`request_context`; :class:`~sslkeeper.logging.setup.RunContextFilter`
copies the current values onto every log record.
"""

from __future__ import annotations

import contextlib
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

service_var: ContextVar[str | None] = ContextVar("sslkeeper_service", default=None)
domain_var: ContextVar[str | None] = ContextVar("sslkeeper_domain", default=None)


@contextlib.contextmanager
def request_context(*, service: str | None, domain: str | None) -> Iterator[None]:
    service_token = service_var.set(service)
    domain_token = domain_var.set(domain)
    try:
        yield
    finally:
        domain_var.reset(domain_token)
        service_var.reset(service_token)
