"""ACME challenge handler factories.

Build ACMEOW :class:`ChallengeHandler` instances from the
``acme.challenge_handler`` / ``acme.challenge_handler_config`` settings.

Built-in factories:

- ``alidns``        -- DNS-01 records managed through Alibaba Cloud DNS
- ``callback_dns``  -- wrap shell scripts for DNS-01 record management
- ``file_http``     -- serve HTTP-01 tokens from a webroot directory
- ``callback_http`` -- wrap shell scripts for HTTP-01 token management

Custom factories can be loaded via the ``ext:`` prefix
(e.g. ``ext:mypackage.handlers.MyFactory``).
"""

from __future__ import annotations

import abc
import importlib
import logging
import subprocess
from typing import TYPE_CHECKING, Any

from sslkeeper.core.errors import IssuanceError

if TYPE_CHECKING:
    from sslkeeper.config.settings import CredentialsSettings

log = logging.getLogger(__name__)


class UpstreamHandlerFactory(abc.ABC):
    """Create an ACMEOW ChallengeHandler from configuration."""

    @abc.abstractmethod
    def create(
        self,
        config: dict[str, Any],
        credentials: CredentialsSettings | None = None,
    ) -> Any:
        """Build and return a ChallengeHandler instance.

        Parameters
        ----------
        config:
            The ``challenge_handler_config`` dict from settings.
        credentials:
            Alibaba Cloud credentials, for handlers that call cloud APIs.

        Returns
        -------
        acmeow.ChallengeHandler
            A ready-to-use challenge handler.

        """


class AliDnsFactory(UpstreamHandlerFactory):
    """Factory for a DNS-01 handler backed by Alibaba Cloud DNS.

    Optional config keys:

    - ``zones``: DNS zones hosted in Alibaba Cloud DNS; the longest zone
      that the record name falls under is used.  When omitted, the last
      two labels of the validated domain are taken as the zone.
    - ``endpoint``: AliDNS API endpoint (default ``alidns.aliyuncs.com``)
    - ``ttl``: TXT record TTL in seconds (default: 600)
    - ``propagation_delay``: seconds to wait after record creation
      (default: 10)

    """

    def create(
        self,
        config: dict[str, Any],
        credentials: CredentialsSettings | None = None,
    ) -> Any:
        """Build a CallbackDnsHandler that writes TXT records via AliDNS."""
        if credentials is None or not credentials.access_key_id:
            msg = "alidns handler requires Alibaba Cloud credentials"
            raise IssuanceError(msg)

        from acmeow.handlers import CallbackDnsHandler  # noqa: PLC0415
        from alibabacloud_alidns20150109 import models as dns_models  # noqa: PLC0415
        from alibabacloud_alidns20150109.client import Client as DnsClient  # noqa: PLC0415

        from sslkeeper.clients import openapi_config  # noqa: PLC0415

        endpoint = config.get("endpoint", "alidns.aliyuncs.com")
        zones = tuple(config.get("zones") or ())
        ttl = config.get("ttl", 600)  # noqa: PLR2004
        propagation_delay = config.get("propagation_delay", 10)  # noqa: PLR2004

        client = DnsClient(openapi_config(credentials, endpoint))

        def create_record(
            domain: str,
            record_name: str,
            record_value: str,
        ) -> None:
            zone, rr = split_record_name(record_name, domain, zones)
            log.info("AliDNS create: TXT %s in zone %s", rr, zone)
            client.add_domain_record(
                dns_models.AddDomainRecordRequest(
                    domain_name=zone,
                    rr=rr,
                    type="TXT",
                    value=record_value,
                    ttl=ttl,
                ),
            )

        def delete_record(domain: str, record_name: str) -> None:
            zone, rr = split_record_name(record_name, domain, zones)
            log.info("AliDNS delete: TXT %s in zone %s", rr, zone)
            client.delete_sub_domain_records(
                dns_models.DeleteSubDomainRecordsRequest(
                    domain_name=zone,
                    rr=rr,
                    type="TXT",
                ),
            )

        return CallbackDnsHandler(
            create_record=create_record,
            delete_record=delete_record,
            propagation_delay=propagation_delay,
        )


def split_record_name(
    record_name: str,
    domain: str,
    zones: tuple[str, ...] = (),
) -> tuple[str, str]:
    """Split a FQDN into ``(zone, rr)`` for the AliDNS record APIs.

    >>> split_record_name("_acme-challenge.cdn.example.com", "cdn.example.com")
    ('example.com', '_acme-challenge.cdn')
    """
    record_name = record_name.rstrip(".")
    candidates = [z.strip(".") for z in zones if record_name.endswith("." + z.strip("."))]
    if candidates:
        zone = max(candidates, key=len)
    else:
        zone = ".".join(domain.lstrip("*.").split(".")[-2:])
    if not record_name.endswith("." + zone):
        msg = f"Record '{record_name}' is not inside zone '{zone}'"
        raise IssuanceError(msg)
    return zone, record_name[: -len(zone) - 1]


class CallbackDnsFactory(UpstreamHandlerFactory):
    """Factory for ACMEOW's CallbackDnsHandler driven by scripts.

    Required config keys:

    - ``create_script``: called as ``script <domain> <record_name> <record_value>``
    - ``delete_script``: called as ``script <domain> <record_name>``

    Optional: ``propagation_delay`` (default 10), ``script_timeout``
    (default 60).
    """

    def create(
        self,
        config: dict[str, Any],
        credentials: CredentialsSettings | None = None,  # noqa: ARG002
    ) -> Any:
        create_script = config.get("create_script")
        delete_script = config.get("delete_script")
        if not create_script:
            msg = "callback_dns handler requires 'create_script' in config"
            raise IssuanceError(msg)
        if not delete_script:
            msg = "callback_dns handler requires 'delete_script' in config"
            raise IssuanceError(msg)

        from acmeow.handlers import CallbackDnsHandler  # noqa: PLC0415

        propagation_delay = config.get("propagation_delay", 10)  # noqa: PLR2004
        script_timeout = config.get("script_timeout", 60)  # noqa: PLR2004

        def create_record(domain: str, record_name: str, record_value: str) -> None:
            log.info("DNS create: %s %s via %s", record_name, domain, create_script)
            _run_script([create_script, domain, record_name, record_value], script_timeout)

        def delete_record(domain: str, record_name: str) -> None:
            log.info("DNS delete: %s %s via %s", record_name, domain, delete_script)
            _run_script([delete_script, domain, record_name], script_timeout)

        return CallbackDnsHandler(
            create_record=create_record,
            delete_record=delete_record,
            propagation_delay=propagation_delay,
        )


class FileHttpFactory(UpstreamHandlerFactory):
    """Factory for ACMEOW's FileHttpHandler.

    Required config keys:

    - ``webroot``: directory served at ``/.well-known/acme-challenge/``

    HTTP-01 cannot validate wildcard names; only useful when every
    discovered domain has two labels.
    """

    def create(
        self,
        config: dict[str, Any],
        credentials: CredentialsSettings | None = None,  # noqa: ARG002
    ) -> Any:
        webroot = config.get("webroot")
        if not webroot:
            msg = "file_http handler requires 'webroot' in config"
            raise IssuanceError(msg)

        from acmeow.handlers import FileHttpHandler  # noqa: PLC0415

        return FileHttpHandler(webroot=webroot)


class CallbackHttpFactory(UpstreamHandlerFactory):
    """Factory for ACMEOW's CallbackHttpHandler driven by scripts.

    Required config keys:

    - ``deploy_script``: called as ``script <domain> <token> <key_authorization>``
    - ``cleanup_script``: called as ``script <domain> <token>``

    """

    def create(
        self,
        config: dict[str, Any],
        credentials: CredentialsSettings | None = None,  # noqa: ARG002
    ) -> Any:
        deploy_script = config.get("deploy_script")
        cleanup_script = config.get("cleanup_script")
        if not deploy_script:
            msg = "callback_http handler requires 'deploy_script' in config"
            raise IssuanceError(msg)
        if not cleanup_script:
            msg = "callback_http handler requires 'cleanup_script' in config"
            raise IssuanceError(msg)

        from acmeow.handlers import CallbackHttpHandler  # noqa: PLC0415

        script_timeout = config.get("script_timeout", 60)  # noqa: PLR2004

        def deploy(domain: str, token: str, key_authorization: str) -> None:
            log.info("HTTP deploy: %s %s via %s", token, domain, deploy_script)
            _run_script([deploy_script, domain, token, key_authorization], script_timeout)

        def cleanup(domain: str, token: str) -> None:
            log.info("HTTP cleanup: %s %s via %s", token, domain, cleanup_script)
            _run_script([cleanup_script, domain, token], script_timeout)

        return CallbackHttpHandler(deploy=deploy, cleanup=cleanup)


def _run_script(argv: list[str], timeout: int) -> None:
    subprocess.run(  # noqa: S603
        argv,
        check=True,
        timeout=timeout,
        capture_output=True,
        text=True,
    )


_BUILTIN_FACTORIES: dict[str, UpstreamHandlerFactory] = {
    "alidns": AliDnsFactory(),
    "callback_dns": CallbackDnsFactory(),
    "file_http": FileHttpFactory(),
    "callback_http": CallbackHttpFactory(),
}


def load_upstream_handler(
    handler_name: str,
    config: dict[str, Any],
    credentials: CredentialsSettings | None = None,
) -> Any:
    """Load and create a challenge handler.

    Parameters
    ----------
    handler_name:
        Built-in name (``alidns``, ``callback_dns``, ``file_http``,
        ``callback_http``) or ``ext:fully.qualified.FactoryClass``.
    config:
        The ``challenge_handler_config`` dict from settings.
    credentials:
        Alibaba Cloud credentials forwarded to the factory.

    Raises
    ------
    IssuanceError
        If the handler cannot be loaded or created.

    """
    if handler_name in _BUILTIN_FACTORIES:
        return _BUILTIN_FACTORIES[handler_name].create(config, credentials)

    if handler_name.startswith("ext:"):
        return _load_external_handler(handler_name[4:], config, credentials)

    msg = (
        f"Unknown challenge handler '{handler_name}'; "
        f"built-in options: {sorted(_BUILTIN_FACTORIES)}. "
        "Use 'ext:mypackage.module.FactoryClass' for custom handlers."
    )
    raise IssuanceError(msg)


def _load_external_handler(
    fqn: str,
    config: dict[str, Any],
    credentials: CredentialsSettings | None,
) -> Any:
    """Load and instantiate an external handler factory by FQN."""
    module_path, _, cls_name = fqn.rpartition(".")
    if not module_path:
        msg = (
            f"Invalid external handler factory '{fqn}': must be "
            "fully qualified (e.g. 'mypackage.module.FactoryClass')"
        )
        raise IssuanceError(msg)
    try:
        module = importlib.import_module(module_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load external handler factory '{fqn}': {exc}"
        raise IssuanceError(msg) from exc

    if not (isinstance(cls, type) and issubclass(cls, UpstreamHandlerFactory)):
        msg = f"External handler factory '{fqn}' must be a subclass of UpstreamHandlerFactory"
        raise IssuanceError(msg)

    return cls().create(config, credentials)
