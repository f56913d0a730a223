"""SSLKEEPER configuration loader.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    KeeperConfig(config_file="/etc/sslkeeper/config.yaml")

    # 2. Any module retrieves it afterwards
    from sslkeeper.config import get_config
    cfg = get_config()
    cfg.settings.acme.email  # typed access

    # 3. Extension / dynamic access
    cfg.get("acme.challenge_handler_config.zones", default=[])

Loading order: read YAML/JSON, resolve ``${VAR}`` references, validate
against the bundled JSON schema, run cross-field checks, then build the
frozen settings tree.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator

from sslkeeper.config.settings import KeeperSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_CLASS_PATH_RE = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$",
)

_BUILTIN_AGENTS = frozenset({"cdn", "oss", "live"})
_BUILTIN_HANDLERS = frozenset({"alidns", "callback_dns", "file_http", "callback_http"})
_DNS_HANDLERS = frozenset({"alidns", "callback_dns"})

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: KeeperConfig | None = None


def get_config() -> KeeperConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`KeeperConfig` has not been
    created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "KeeperConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when loading or validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _read_file(path: Path) -> dict:
    try:
        with path.open(encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except OSError as exc:
        raise ConfigValidationError([f"Cannot read config file '{path}': {exc}"]) from exc
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigValidationError([f"Cannot parse config file '{path}': {exc}"]) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigValidationError([f"Config file '{path}' must contain a mapping"])
    return data


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class KeeperConfig:
    """Central configuration for SSLKEEPER.

    The JSON schema is bundled at ``config/schema.json``; users supply
    only ``config_file``.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the raw dict via :pyattr:`data` /
    :pymeth:`get`.
    """

    def __init__(self, *, config_file: str | Path) -> None:
        global _instance  # noqa: PLW0603

        self._source = Path(config_file)
        self._data = _read_file(self._source)
        _resolve_env_vars(self._data)
        self._validate_schema()
        self.additional_checks()
        self._settings: KeeperSettings = build_settings(self._data)
        _instance = self

    # -- typed access -------------------------------------------------------

    @property
    def settings(self) -> KeeperSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    @property
    def data(self) -> dict:
        return self._data

    def get(self, path: str, default: Any = None) -> Any:  # noqa: ANN401
        """Return the raw value at dotted *path*, or *default*."""
        node: Any = self._data
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    # -- validation ---------------------------------------------------------

    def _validate_schema(self) -> None:
        schema = json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))
        validator = Draft202012Validator(schema)
        errors = [
            f"{'.'.join(str(p) for p in err.absolute_path) or '<root>'}: {err.message}"
            for err in sorted(validator.iter_errors(self._data), key=lambda e: list(e.absolute_path))
        ]
        if errors:
            raise ConfigValidationError(errors)

    def additional_checks(self) -> None:  # noqa: C901, PLR0912
        """Semantic & cross-field validation.

        Runs after schema validation; collects every problem before
        raising.
        """
        from sslkeeper.agents.base import parse_tag  # noqa: PLC0415

        errors: list[str] = []
        warnings: list[str] = []

        storage = self._data.get("storage") or {}
        acme = self._data.get("acme") or {}
        agents = self._data.get("agents") or {}

        # -- storage --
        backend = storage.get("backend", "oss")
        if backend == "oss" and not (storage.get("oss") or {}).get("bucket"):
            errors.append("storage.oss.bucket is required when storage.backend is 'oss'")
        if backend.startswith("ext:") and not _CLASS_PATH_RE.match(backend[4:]):
            errors.append(f"storage.backend '{backend}' is not a valid class path")

        # -- acme --
        if not acme.get("email"):
            errors.append("acme.email is required")

        handler = acme.get("challenge_handler", "alidns")
        challenge_type = acme.get("challenge_type", "dns-01")
        if handler.startswith("ext:"):
            if not _CLASS_PATH_RE.match(handler[4:]):
                errors.append(f"acme.challenge_handler '{handler}' is not a valid class path")
        elif handler not in _BUILTIN_HANDLERS:
            errors.append(
                f"acme.challenge_handler '{handler}' is unknown; "
                f"built-in options: {sorted(_BUILTIN_HANDLERS)}",
            )
        elif (handler in _DNS_HANDLERS) != (challenge_type == "dns-01"):
            errors.append(
                f"acme.challenge_handler '{handler}' cannot serve "
                f"acme.challenge_type '{challenge_type}'",
            )
        if challenge_type == "http-01":
            warnings.append("http-01 cannot validate wildcard certificates")

        if bool(acme.get("eab_kid")) != bool(acme.get("eab_hmac_key")):
            errors.append("acme.eab_kid and acme.eab_hmac_key must be set together")

        # -- agents --
        enabled = agents.get("enabled", ["cdn", "oss", "live"])
        for name in enabled:
            if name.startswith("ext:"):
                if not _CLASS_PATH_RE.match(name[4:]):
                    errors.append(f"agents.enabled entry '{name}' is not a valid class path")
            elif name not in _BUILTIN_AGENTS:
                errors.append(
                    f"agents.enabled entry '{name}' is unknown; "
                    f"built-in options: {sorted(_BUILTIN_AGENTS)}",
                )
        if len(set(enabled)) != len(enabled):
            errors.append("agents.enabled must not list an agent twice")
        if not enabled:
            warnings.append("agents.enabled is empty; runs will only reconcile")

        tag = (agents.get("cdn") or {}).get("tag")
        if tag:
            try:
                parse_tag(tag)
            except ValueError as exc:
                errors.append(f"agents.cdn.tag: {exc}")

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers ------------------------------------------------------------

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None

    def __repr__(self) -> str:
        return f"<KeeperConfig config_file={self._source}>"
