"""Tests for sslkeeper.agents.base."""

from __future__ import annotations

import threading
from datetime import UTC, datetime

import pytest

from sslkeeper.agents.base import (
    CertificateRequest,
    DiscoveryAgent,
    iter_pages,
    parse_service_time,
    parse_tag,
)
from sslkeeper.core.errors import DiscoveryError


class _Request(CertificateRequest):
    def service_name(self):
        return "test"

    def install_certificate(self, cert):
        pass


class _ListAgent(DiscoveryAgent):
    name = "list"

    def __init__(self, domains, error=None, queue_size=2):
        super().__init__(queue_size=queue_size)
        self._domains = domains
        self._error = error

    def discover(self):
        for domain in self._domains:
            yield _Request(domain)
        if self._error is not None:
            raise self._error


class _EndlessAgent(DiscoveryAgent):
    name = "endless"

    def discover(self):
        n = 0
        while True:
            n += 1
            yield _Request(f"d{n}.example.com")


def _producer_alive(name):
    return any(t.name == f"discover-{name}" and t.is_alive() for t in threading.enumerate())


# ---------------------------------------------------------------------------
# CertificateRequest
# ---------------------------------------------------------------------------


class TestCertificateRequest:
    def test_common_name(self):
        assert _Request("cdn.example.com").domain_common_name() == "*.example.com"
        assert _Request("example.com").domain_common_name() == "example.com"

    def test_repr(self):
        assert repr(_Request("cdn.example.com")) == "<_Request test:cdn.example.com>"


# ---------------------------------------------------------------------------
# DiscoveryAgent.requests
# ---------------------------------------------------------------------------


class TestRequests:
    def test_yields_in_discovery_order(self):
        domains = [f"d{i}.example.com" for i in range(10)]
        agent = _ListAgent(domains, queue_size=2)

        assert [r.domain for r in agent.requests()] == domains
        assert not _producer_alive("list")

    def test_empty(self):
        assert list(_ListAgent([]).requests()) == []

    def test_failure_raised_after_buffered_requests(self):
        agent = _ListAgent(["a.example.com", "b.example.com"], error=RuntimeError("api down"))
        seen = []

        with pytest.raises(DiscoveryError, match="list discovery failed: api down") as exc_info:
            for request in agent.requests():
                seen.append(request.domain)

        assert seen == ["a.example.com", "b.example.com"]
        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_discovery_error_passes_through(self):
        original = DiscoveryError("page 3 failed")
        agent = _ListAgent([], error=original)

        with pytest.raises(DiscoveryError) as exc_info:
            list(agent.requests())
        assert exc_info.value is original

    def test_early_close_stops_producer(self):
        requests = _EndlessAgent(queue_size=1).requests()

        assert next(requests).domain == "d1.example.com"
        requests.close()

        assert not _producer_alive("endless")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestIterPages:
    def test_walks_until_short_page(self):
        pages = {1: ["a", "b"], 2: ["c", "d"], 3: ["e"]}
        calls = []

        def fetch(page):
            calls.append(page)
            return pages[page], 5, 2

        assert list(iter_pages(fetch)) == ["a", "b", "c", "d", "e"]
        assert calls == [1, 2, 3]

    def test_stops_on_empty_page(self):
        def fetch(page):
            return ([], 10, 2) if page > 1 else (["a", "b"], 10, 2)

        assert list(iter_pages(fetch)) == ["a", "b"]

    def test_exact_multiple_fetches_one_more(self):
        calls = []

        def fetch(page):
            calls.append(page)
            return (["a", "b"], 2, 2) if page == 1 else ([], 2, 2)

        assert list(iter_pages(fetch)) == ["a", "b"]
        assert calls == [1, 2]


class TestParseServiceTime:
    def test_rfc3339(self):
        assert parse_service_time("2025-01-31T12:00:00Z") == datetime(2025, 1, 31, 12, tzinfo=UTC)

    def test_rfc1123(self):
        assert parse_service_time("Mon, 4 May 2048 10:14:51 GMT") == datetime(
            2048, 5, 4, 10, 14, 51, tzinfo=UTC
        )

    def test_naive_assumed_utc(self):
        assert parse_service_time("2025-01-31 12:00:00").tzinfo == UTC

    @pytest.mark.parametrize("value", [None, "", "not a date"])
    def test_unparseable(self, value):
        assert parse_service_time(value) is None


class TestParseTag:
    def test_key_and_value(self):
        assert parse_tag("env:prod") == ("env", "prod")

    def test_key_only(self):
        assert parse_tag("managed") == ("managed", None)

    def test_value_with_colon(self):
        assert parse_tag("owner:team:web") == ("owner", "team:web")

    def test_empty_key(self):
        with pytest.raises(ValueError, match="illegal tag format"):
            parse_tag(":prod")
