"""Base classes for discovery agents and certificate requests.

A :class:`DiscoveryAgent` walks one cloud service and yields a
:class:`CertificateRequest` for every domain whose installed
certificate is missing or due for renewal.  Discovery runs in a
producer thread and hands requests over a bounded queue, so listing
the next page overlaps with certificate work on the current domain
while the keeper still handles one request at a time.
"""

from __future__ import annotations

import abc
import email.utils
import logging
import queue
import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, ClassVar

from sslkeeper.core.errors import DiscoveryError
from sslkeeper.core.naming import domain_to_common_name

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sslkeeper.certs.certificate import Certificate
    from sslkeeper.config.settings import KeeperSettings

log = logging.getLogger(__name__)

_DONE = object()
_PUT_POLL_SECONDS = 0.2


class CertificateRequest(abc.ABC):
    """One domain of one service that needs a certificate installed.

    Parameters
    ----------
    domain:
        The service domain, e.g. ``cdn.example.com``.

    """

    def __init__(self, domain: str) -> None:
        self.domain = domain

    @abc.abstractmethod
    def service_name(self) -> str:
        """Short name of the owning service (``cdn``, ``oss``, ``live``)."""

    def domain_common_name(self) -> str:
        """Common name of the certificate that should cover this domain."""
        return domain_to_common_name(self.domain)

    @abc.abstractmethod
    def install_certificate(self, cert: Certificate) -> None:
        """Point the service domain at *cert*.

        Raises
        ------
        InstallError
            If the service rejects the certificate.

        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.service_name()}:{self.domain}>"


class DiscoveryAgent(abc.ABC):
    """Base class for discovery agents.

    Subclasses implement :meth:`discover` as a plain generator; callers
    consume :meth:`requests`, which runs the generator in a producer
    thread.

    Parameters
    ----------
    queue_size:
        Maximum number of discovered requests buffered ahead of the
        consumer.

    """

    name: ClassVar[str] = ""

    def __init__(self, *, queue_size: int = 16) -> None:
        self._queue_size = queue_size

    @classmethod
    def from_settings(cls, settings: KeeperSettings) -> DiscoveryAgent:
        """Build the agent from the full keeper settings.

        Optional hook.  Agents listed in ``agents.enabled`` must override
        it; the registry rejects classes that do not.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def discover(self) -> Iterator[CertificateRequest]:
        """Yield a request for every domain that needs a certificate."""

    def requests(self) -> Iterator[CertificateRequest]:
        """Yield discovered requests in discovery order.

        Raises
        ------
        DiscoveryError
            After every request produced before the failure has been
            yielded, if discovery failed.

        """
        buffer: queue.Queue[Any] = queue.Queue(maxsize=self._queue_size)
        stop = threading.Event()
        failure: list[BaseException] = []

        def put(item: Any) -> bool:
            while not stop.is_set():
                try:
                    buffer.put(item, timeout=_PUT_POLL_SECONDS)
                except queue.Full:
                    continue
                return True
            return False

        def produce() -> None:
            try:
                for request in self.discover():
                    if not put(request):
                        return
            except Exception as exc:  # noqa: BLE001
                failure.append(exc)
            finally:
                put(_DONE)

        producer = threading.Thread(
            target=produce,
            name=f"discover-{self.name or type(self).__name__}",
            daemon=True,
        )
        producer.start()

        try:
            while True:
                item = buffer.get()
                if item is _DONE:
                    break
                yield item
        finally:
            stop.set()
            producer.join()

        if failure:
            exc = failure[0]
            if isinstance(exc, DiscoveryError):
                raise exc
            msg = f"{self.name or type(self).__name__} discovery failed: {exc}"
            raise DiscoveryError(msg, retryable=True) from exc


# ---------------------------------------------------------------------------
# Helpers shared by the built-in agents
# ---------------------------------------------------------------------------


def iter_pages(
    fetch: Callable[[int], tuple[list[Any], int, int]],
) -> Iterator[Any]:
    """Yield items across numbered pages.

    *fetch* takes a 1-based page number and returns ``(items,
    total_count, page_size)``.  Paging stops on an empty page or once
    ``total_count < page_size * page_number``.
    """
    page_number = 1
    while True:
        items, total_count, page_size = fetch(page_number)
        if not items:
            return
        yield from items
        if total_count < page_size * page_number:
            return
        page_number += 1


def parse_service_time(value: str | None) -> datetime | None:
    """Parse an expiry timestamp reported by a cloud service.

    Accepts RFC 3339 (``2025-01-31T12:00:00Z``) and RFC 1123
    (``Mon, 4 May 2048 10:14:51 GMT``).  Returns ``None`` for empty or
    unparseable values.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        try:
            parsed = email.utils.parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_tag(tag: str) -> tuple[str, str | None]:
    """Split a ``key[:value]`` resource tag filter.

    Raises
    ------
    ValueError
        If the key part is empty.

    """
    key, _, value = tag.partition(":")
    if not key:
        msg = f"illegal tag format: {tag!r}"
        raise ValueError(msg)
    return key, value or None
