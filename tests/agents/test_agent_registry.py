"""Tests for sslkeeper.agents.registry."""

from __future__ import annotations

import types
from unittest.mock import MagicMock, patch

import pytest

from sslkeeper.agents.base import DiscoveryAgent
from sslkeeper.agents.cdn import CdnAgent
from sslkeeper.agents.live import LiveAgent
from sslkeeper.agents.oss import OssAgent
from sslkeeper.agents.registry import load_agent, load_agents
from sslkeeper.config.settings import build_settings
from sslkeeper.core.errors import DiscoveryError


class _NullAgent(DiscoveryAgent):
    name = "null"

    @classmethod
    def from_settings(cls, settings):
        return cls(queue_size=settings.agents.queue_size)

    def discover(self):
        return iter(())


class _AbstractAgent(DiscoveryAgent):
    pass


class _UnconfigurableAgent(DiscoveryAgent):
    def discover(self):
        return iter(())


def _settings(**agents):
    return build_settings(
        {
            "credentials": {"access_key_id": "AKID", "access_key_secret": "SECRET"},
            "agents": agents,
        },
    )


class TestBuiltinAgents:
    @patch("sslkeeper.agents.live.LiveClient")
    @patch("sslkeeper.agents.cdn.CdnClient")
    def test_default_order(self, mock_cdn, mock_live):
        agents = load_agents(_settings())
        assert [type(a) for a in agents] == [CdnAgent, OssAgent, LiveAgent]

    @patch("sslkeeper.agents.live.LiveClient")
    @patch("sslkeeper.agents.cdn.CdnClient")
    def test_configured_order(self, mock_cdn, mock_live):
        agents = load_agents(_settings(enabled=["live", "cdn"]))
        assert [a.name for a in agents] == ["live", "cdn"]

    @patch("sslkeeper.agents.cdn.CdnClient")
    def test_cdn_settings_forwarded(self, mock_cdn):
        agent = load_agent(
            "cdn",
            _settings(cdn={"endpoint": "cdn.example-endpoint.com", "tag": "env:prod"}),
        )
        config = mock_cdn.call_args[0][0]
        assert config.endpoint == "cdn.example-endpoint.com"
        assert agent._tag == ("env", "prod")

    @patch("sslkeeper.agents.live.LiveClient")
    def test_live_uses_own_region(self, mock_live):
        load_agent("live", _settings(live={"region_id": "ap-southeast-1"}))
        assert mock_live.call_args[0][0].region_id == "ap-southeast-1"

    def test_none_enabled(self):
        assert load_agents(_settings(enabled=[])) == []

    def test_unknown(self):
        with pytest.raises(DiscoveryError, match="Unknown discovery agent 'ecs'"):
            load_agent("ecs", _settings())


class TestExtPrefix:
    @patch("sslkeeper.agents.registry.importlib.import_module")
    def test_loads_external_agent(self, mock_import: MagicMock) -> None:
        fake_module = types.ModuleType("mycompany.agents")
        fake_module.NullAgent = _NullAgent  # type: ignore[attr-defined]
        mock_import.return_value = fake_module

        agent = load_agent("ext:mycompany.agents.NullAgent", _settings(queue_size=3))

        assert isinstance(agent, _NullAgent)
        assert agent._queue_size == 3

    def test_requires_qualified_name(self):
        with pytest.raises(DiscoveryError, match="fully qualified"):
            load_agent("ext:NullAgent", _settings())

    @patch("sslkeeper.agents.registry.importlib.import_module")
    def test_import_error(self, mock_import: MagicMock) -> None:
        mock_import.side_effect = ImportError("nope")
        with pytest.raises(DiscoveryError, match="Failed to load discovery agent"):
            load_agent("ext:mycompany.agents.Missing", _settings())

    @patch("sslkeeper.agents.registry.importlib.import_module")
    def test_not_an_agent(self, mock_import: MagicMock) -> None:
        fake_module = types.ModuleType("mycompany.agents")
        fake_module.Thing = dict  # type: ignore[attr-defined]
        mock_import.return_value = fake_module
        with pytest.raises(DiscoveryError, match="not a subclass of DiscoveryAgent"):
            load_agent("ext:mycompany.agents.Thing", _settings())

    @patch("sslkeeper.agents.registry.importlib.import_module")
    def test_abstract_discover(self, mock_import: MagicMock) -> None:
        fake_module = types.ModuleType("mycompany.agents")
        fake_module.Abstract = _AbstractAgent  # type: ignore[attr-defined]
        mock_import.return_value = fake_module
        with pytest.raises(DiscoveryError, match="does not implement 'discover\\(\\)'"):
            load_agent("ext:mycompany.agents.Abstract", _settings())

    @patch("sslkeeper.agents.registry.importlib.import_module")
    def test_missing_from_settings(self, mock_import: MagicMock) -> None:
        fake_module = types.ModuleType("mycompany.agents")
        fake_module.Bare = _UnconfigurableAgent  # type: ignore[attr-defined]
        mock_import.return_value = fake_module
        with pytest.raises(DiscoveryError, match="does not implement 'from_settings\\(\\)'"):
            load_agent("ext:mycompany.agents.Bare", _settings())
