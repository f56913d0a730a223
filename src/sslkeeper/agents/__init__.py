"""Discovery agents: enumerate service domains that need a certificate."""

from sslkeeper.agents.base import CertificateRequest, DiscoveryAgent
from sslkeeper.agents.registry import load_agents

__all__ = ["CertificateRequest", "DiscoveryAgent", "load_agents"]
