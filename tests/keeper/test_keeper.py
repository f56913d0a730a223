"""Tests for sslkeeper.keeper.Keeper and RunReport."""

from __future__ import annotations

import logging
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from sslkeeper.agents.base import CertificateRequest, DiscoveryAgent
from sslkeeper.core.errors import DiscoveryError, InstallError, IssuanceError, RemoteStoreError
from sslkeeper.keeper import Keeper, RunReport
from sslkeeper.logging.context import domain_var, service_var


class _RecordingRequest(CertificateRequest):
    def __init__(self, domain, service="cdn", fail=False):
        super().__init__(domain)
        self._service = service
        self._fail = fail
        self.installed = []
        self.context = None

    def service_name(self):
        return self._service

    def install_certificate(self, cert):
        self.context = (service_var.get(), domain_var.get())
        if self._fail:
            msg = f"install on {self.domain} rejected"
            raise InstallError(msg)
        self.installed.append(cert)


class _StaticAgent(DiscoveryAgent):
    def __init__(self, name, requests, error=None):
        super().__init__(queue_size=4)
        self.name = name
        self._requests = requests
        self._error = error

    def discover(self):
        yield from self._requests
        if self._error is not None:
            raise self._error


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


class TestServe:
    def test_installs_resolved_certificates(self, manager, issuer):
        cdn = _RecordingRequest("cdn.example.com")
        img = _RecordingRequest("img.example.com", service="oss")
        keeper = Keeper([_StaticAgent("cdn", [cdn]), _StaticAgent("oss", [img])], manager)

        report = keeper.run()

        assert report.requests == 2
        assert issuer.calls == [("*.example.com", None)]
        assert cdn.installed[0] is img.installed[0]
        assert cdn.installed[0].common_name == "*.example.com"
        assert report.issued == 2
        assert report.reused == 0
        assert not report.failed

    def test_reused_certificate_counted(self, manager, blob_storage, cert_factory):
        pem, key = cert_factory("example.com")
        blob_storage.blobs["example.com/key.pem"] = key
        blob_storage.blobs["example.com/cert.pem"] = pem

        report = Keeper([_StaticAgent("cdn", [_RecordingRequest("example.com")])], manager).run()

        assert report.reused == 1
        assert report.issued == 0

    def test_request_context_set_during_install(self, manager):
        request = _RecordingRequest("cdn.example.com", service="cdn")
        Keeper([_StaticAgent("cdn", [request])], manager).run()

        assert request.context == ("cdn", "cdn.example.com")
        assert service_var.get() is None
        assert domain_var.get() is None

    def test_install_failure_does_not_stop_run(self, manager):
        bad = _RecordingRequest("a.example.com", fail=True)
        good = _RecordingRequest("b.example.com")

        report = Keeper([_StaticAgent("cdn", [bad, good])], manager).run()

        assert report.install_failures == 1
        assert len(good.installed) == 1
        assert report.failed

    def test_resolve_failure_does_not_stop_run(self, manager, issuer):
        issuer.error = IssuanceError("DNS problem")
        first = _RecordingRequest("a.example.org")
        second = _RecordingRequest("b.example.org")

        report = Keeper([_StaticAgent("cdn", [first, second])], manager).run()

        assert report.resolve_failures == 2
        assert first.installed == []
        assert second.installed == []

    def test_agent_failure_moves_to_next_agent(self, manager, caplog):
        early = _RecordingRequest("early.example.com")
        later = _RecordingRequest("later.example.net", service="live")
        agents = [
            _StaticAgent("cdn", [early], error=DiscoveryError("page 2 failed")),
            _StaticAgent("live", [later]),
        ]

        with caplog.at_level(logging.ERROR, logger="sslkeeper.keeper"):
            report = Keeper(agents, manager).run()

        assert report.agent_failures == 1
        assert len(early.installed) == 1
        assert len(later.installed) == 1
        assert "Agent cdn failed" in caplog.text

    def test_unexpected_install_error_does_not_stop_run(self, manager):
        bad = _RecordingRequest("a.example.com")
        bad.install_certificate = MagicMock(side_effect=RuntimeError("sdk blew up"))
        good = _RecordingRequest("b.example.com")
        manager.reconcile_duplicates = MagicMock(return_value=[])

        report = Keeper([_StaticAgent("cdn", [bad, good])], manager).run()

        assert report.install_failures == 1
        assert len(good.installed) == 1
        manager.reconcile_duplicates.assert_called_once()

    def test_unexpected_resolve_error_does_not_stop_run(self, manager, issuer):
        issuer.error = TypeError("unexpected response shape")
        first = _RecordingRequest("a.example.org")
        later = _RecordingRequest("later.example.net", service="live")

        report = Keeper(
            [_StaticAgent("cdn", [first]), _StaticAgent("live", [later])],
            manager,
        ).run()

        assert report.resolve_failures == 2
        assert report.agent_failures == 0

    def test_unexpected_agent_error_moves_to_next_agent(self, manager):
        broken = MagicMock()
        broken.name = "ext"
        broken.requests.side_effect = AttributeError("no such attribute")
        later = _RecordingRequest("later.example.net", service="live")

        report = Keeper([broken, _StaticAgent("live", [later])], manager).run()

        assert report.agent_failures == 1
        assert len(later.installed) == 1

    def test_no_agents(self, manager):
        report = Keeper([], manager).run()
        assert report.requests == 0
        assert not report.failed


# ---------------------------------------------------------------------------
# reconcile
# ---------------------------------------------------------------------------


class TestReconcile:
    def test_duplicates_before_expired(self):
        order = []
        manager = MagicMock()
        manager.reconcile_duplicates.side_effect = lambda: order.append("duplicates") or [1]
        manager.reconcile_expired.side_effect = lambda: order.append("expired") or [2, 3]

        report = Keeper([], manager).run()

        assert order == ["duplicates", "expired"]
        assert report.deleted_duplicates == [1]
        assert report.deleted_expired == [2, 3]

    def test_reconcile_after_serving(self):
        order = []
        manager = MagicMock()
        manager.get_certificate.side_effect = lambda cn: order.append("resolve") or MagicMock(updated=False)
        manager.reconcile_duplicates.side_effect = lambda: order.append("duplicates") or []
        manager.reconcile_expired.side_effect = lambda: order.append("expired") or []

        Keeper([_StaticAgent("cdn", [_RecordingRequest("a.example.com")])], manager).run()

        assert order == ["resolve", "duplicates", "expired"]

    def test_duplicate_failure_still_prunes_expired(self):
        manager = MagicMock()
        manager.reconcile_duplicates.side_effect = RemoteStoreError("list failed")
        manager.reconcile_expired.return_value = [9]

        report = RunReport()
        Keeper([], manager).reconcile(report)

        assert report.deleted_duplicates == []
        assert report.deleted_expired == [9]

    def test_unexpected_reconcile_error_still_prunes_expired(self):
        manager = MagicMock()
        manager.reconcile_duplicates.side_effect = TypeError("bad listing")
        manager.reconcile_expired.return_value = [4]

        report = RunReport()
        Keeper([], manager).reconcile(report)

        assert report.deleted_expired == [4]

    def test_end_to_end_prunes_remote_store(self, manager, remote_store, cert_factory):
        older, _ = cert_factory("*.example.com", expires_in=timedelta(days=3))
        expired_pem, _ = cert_factory("*.old.example.com")
        old_id = remote_store.add("sslkeeper-example_com-old", older, domains=("*.example.com",))
        expired_id = remote_store.add("sslkeeper-old_example_com", expired_pem, status="EXPIRED")

        report = Keeper([_StaticAgent("cdn", [_RecordingRequest("cdn.example.com")])], manager).run()

        assert report.deleted_duplicates == [old_id]
        assert report.deleted_expired == [expired_id]


class TestClose:
    def test_close_releases_issuer(self, manager, issuer):
        issuer.close = MagicMock()

        Keeper([], manager).close()

        issuer.close.assert_called_once_with()


class TestRunReport:
    @pytest.mark.parametrize("field", ["resolve_failures", "install_failures", "agent_failures"])
    def test_failed(self, field):
        report = RunReport()
        assert not report.failed
        setattr(report, field, 1)
        assert report.failed
