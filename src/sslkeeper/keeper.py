"""Run orchestration.

A run drains every discovery agent in order, resolving and installing a
certificate for each request, then reconciles the Remote Certificate
Store: duplicates first, then expired certificates.  No single failure
aborts the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sslkeeper.logging.context import request_context

if TYPE_CHECKING:
    from sslkeeper.agents.base import CertificateRequest, DiscoveryAgent
    from sslkeeper.certs.manager import CertificateManager

log = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Counters for a single keeper run.

    ``issued`` and ``reused`` count requests, so a certificate issued
    once and installed on two domains counts twice.
    """

    requests: int = 0
    issued: int = 0
    reused: int = 0
    resolve_failures: int = 0
    install_failures: int = 0
    agent_failures: int = 0
    deleted_duplicates: list[int] = field(default_factory=list)
    deleted_expired: list[int] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.resolve_failures or self.install_failures or self.agent_failures)


class Keeper:
    """Drive one serve-then-reconcile pass.

    Parameters
    ----------
    agents:
        Discovery agents, drained in this order.
    manager:
        Certificate manager shared by every agent for the run.

    """

    def __init__(self, agents: list[DiscoveryAgent], manager: CertificateManager) -> None:
        self._agents = agents
        self._manager = manager

    def run(self) -> RunReport:
        report = RunReport()
        self.serve(report)
        self.reconcile(report)
        log.info(
            "Run finished: %d request(s), %d issued, %d reused, "
            "%d resolve failure(s), %d install failure(s), %d agent failure(s), "
            "%d duplicate(s) and %d expired certificate(s) deleted",
            report.requests,
            report.issued,
            report.reused,
            report.resolve_failures,
            report.install_failures,
            report.agent_failures,
            len(report.deleted_duplicates),
            len(report.deleted_expired),
        )
        return report

    def serve(self, report: RunReport) -> None:
        for agent in self._agents:
            agent_name = agent.name or type(agent).__name__
            log.info("Draining agent %s", agent_name)
            try:
                for request in agent.requests():
                    self._handle(request, report)
            except Exception:
                report.agent_failures += 1
                log.exception("Agent %s failed; moving on to the next agent", agent_name)

    def _handle(self, request: CertificateRequest, report: RunReport) -> None:
        service = request.service_name()
        report.requests += 1
        with request_context(service=service, domain=request.domain):
            try:
                common_name = request.domain_common_name()
                log.info("Certificate request from %s: %s -> %s", service, request.domain, common_name)
                cert = self._manager.get_certificate(common_name)
            except Exception:
                report.resolve_failures += 1
                log.exception("Failed to resolve a certificate for %s", request.domain)
                return

            if cert.updated:
                report.issued += 1
            else:
                report.reused += 1

            try:
                request.install_certificate(cert)
            except Exception:
                report.install_failures += 1
                log.exception("Failed to install certificate %s on %s", cert.common_name, request.domain)

    def close(self) -> None:
        self._manager.close()

    def reconcile(self, report: RunReport) -> None:
        try:
            report.deleted_duplicates = self._manager.reconcile_duplicates()
        except Exception:
            log.exception("Duplicate reconciliation failed")
        try:
            report.deleted_expired = self._manager.reconcile_expired()
        except Exception:
            log.exception("Expired reconciliation failed")
