"""ACME issuance client.

Obtains certificates from an ACME CA (Let's Encrypt by default) via
ACMEOW.  The ACME account key and registration are kept in blob storage
so every run, on any host, reuses the same account.

Requires ACMEOW >= 1.1.0 for external CSR support via
``finalize_order(csr=<bytes>)``.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from sslkeeper.certs.cert_utils import build_csr, split_pem_chain
from sslkeeper.core.errors import IssuanceError, KeeperError
from sslkeeper.issuance.base import IssuanceClient, IssuedMaterial
from sslkeeper.issuance.upstream_handlers import load_upstream_handler

if TYPE_CHECKING:
    from sslkeeper.config.settings import AcmeSettings, CredentialsSettings
    from sslkeeper.storage.base import BlobStorage

log = logging.getLogger(__name__)

# Blob keys for the ACME account state, relative to ``acme.account_prefix``
ACCOUNT_KEY_BLOB = "private.key"
ACCOUNT_REGISTRATION_BLOB = "registration.json"


class AcmeIssuanceClient(IssuanceClient):
    """Issuance client backed by an ACME CA through ACMEOW.

    The ACMEOW client is stateful (one current order), which suits the
    keeper's one-domain-at-a-time flow.

    Parameters
    ----------
    settings:
        The ``acme`` configuration section.
    storage:
        Blob storage holding the ACME account state.
    credentials:
        Alibaba Cloud credentials, passed to the challenge handler.

    """

    def __init__(
        self,
        settings: AcmeSettings,
        storage: BlobStorage,
        credentials: CredentialsSettings | None = None,
    ) -> None:
        self._acme = settings
        self._storage = storage
        self._credentials = credentials
        self._client: Any = None
        self._handler: Any = None
        self._storage_path: Path | None = None
        self._tempdir: tempfile.TemporaryDirectory | None = None

    def startup_check(self) -> None:
        """Validate configuration, restore account state, register.

        Raises
        ------
        IssuanceError
            If required fields are missing, the challenge handler cannot
            be loaded, or account registration fails.

        """
        if not self._acme.directory_url:
            msg = "acme.directory_url is required"
            raise IssuanceError(msg)
        if not self._acme.email:
            msg = "acme.email is required"
            raise IssuanceError(msg)
        if not self._acme.challenge_handler:
            msg = "acme.challenge_handler is required"
            raise IssuanceError(msg)

        self._storage_path = self._prepare_storage_path()

        try:
            self._handler = load_upstream_handler(
                self._acme.challenge_handler,
                self._acme.challenge_handler_config,
                self._credentials,
            )
        except IssuanceError:
            raise
        except Exception as exc:  # noqa: BLE001
            msg = (
                f"Failed to load challenge handler "
                f"'{self._acme.challenge_handler}': {exc}"
            )
            raise IssuanceError(msg) from exc

        restored = self._restore_account()

        from acmeow import AcmeClient  # noqa: PLC0415

        try:
            self._init_acme_client(AcmeClient)
        except Exception as exc:  # noqa: BLE001
            msg = f"Failed to initialise ACMEOW client: {exc}"
            raise IssuanceError(msg, retryable=True) from exc

        if not restored:
            self._save_account()

    def _prepare_storage_path(self) -> Path:
        if self._acme.storage_path:
            storage = Path(self._acme.storage_path)
        else:
            # Holds the account key only for the lifetime of this client.
            self._tempdir = tempfile.TemporaryDirectory(prefix="sslkeeper-acme-")
            storage = Path(self._tempdir.name)
        try:
            storage.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Failed to create ACME storage directory '{storage}': {exc}"
            raise IssuanceError(msg) from exc
        return storage

    def _account_files(self) -> tuple[Path, Path]:
        """Return the ACMEOW account key and registration file paths."""
        host = urlparse(self._acme.directory_url).hostname or "unknown"
        account_dir = self._storage_path / "accounts" / host / self._acme.email
        return (
            account_dir / "keys" / f"{self._acme.email}.key",
            account_dir / "account.json",
        )

    def _account_blob(self, name: str) -> str:
        prefix = self._acme.account_prefix.strip("/")
        return f"{prefix}/{name}" if prefix else name

    def _restore_account(self) -> bool:
        """Copy account state from blob storage into the ACMEOW directory.

        Returns ``True`` when both the key and registration were found.
        """
        key = self._storage.read(self._account_blob(ACCOUNT_KEY_BLOB))
        registration = self._storage.read(
            self._account_blob(ACCOUNT_REGISTRATION_BLOB),
        )
        if key is None or registration is None:
            log.info("No stored ACME account for %s; a new one will be registered", self._acme.email)
            return False

        key_path, account_path = self._account_files()
        key_path.parent.mkdir(parents=True, exist_ok=True)
        key_path.write_bytes(key)
        account_path.write_bytes(registration)
        log.info("Restored ACME account for %s from blob storage", self._acme.email)
        return True

    def _save_account(self) -> None:
        """Persist the newly registered account state to blob storage."""
        key_path, account_path = self._account_files()
        try:
            key = key_path.read_bytes()
            registration = account_path.read_bytes()
        except OSError as exc:
            msg = f"ACME account files missing after registration: {exc}"
            raise IssuanceError(msg) from exc

        self._storage.write(self._account_blob(ACCOUNT_KEY_BLOB), key)
        self._storage.write(self._account_blob(ACCOUNT_REGISTRATION_BLOB), registration)
        log.info("Saved ACME account for %s to blob storage", self._acme.email)

    def _init_acme_client(self, acme_client_cls: type) -> None:
        """Create the ACMEOW client and register (or reuse) the account."""
        client_kwargs: dict[str, Any] = {
            "server_url": self._acme.directory_url,
            "email": self._acme.email,
            "storage_path": str(self._storage_path),
            "timeout": self._acme.timeout_seconds,
        }
        if self._acme.proxy_url:
            client_kwargs["proxy_url"] = self._acme.proxy_url
        if not self._acme.verify_ssl:
            client_kwargs["verify_ssl"] = False  # noqa: FBT003

        self._client = acme_client_cls(**client_kwargs)

        if self._acme.eab_kid and self._acme.eab_hmac_key:
            self._client.set_external_account_binding(
                self._acme.eab_kid,
                self._acme.eab_hmac_key,
            )

        self._client.create_account(terms_agreed=True)
        log.info("ACME: account ready with %s", self._acme.directory_url)

    def obtain(self, domain: str, private_key: bytes | None = None) -> IssuedMaterial:
        """Run the order-challenge-finalize flow for *domain*.

        Raises
        ------
        IssuanceError
            On any ACME failure, or when called before
            :meth:`startup_check`.

        """
        if self._client is None:
            msg = "ACME client not initialised; call startup_check() first"
            raise IssuanceError(msg)

        try:
            chain_pem, key_pem = self._execute_flow(domain, private_key)
        except KeeperError:
            raise
        except Exception as exc:  # noqa: BLE001
            exc_type = type(exc).__name__
            msg = f"ACME error for {domain} ({exc_type}): {exc}"
            raise IssuanceError(msg, retryable=_is_retryable(exc)) from exc

        leaf, issuer = split_pem_chain(chain_pem)
        return IssuedMaterial(
            private_key=key_pem,
            certificate=leaf,
            issuer_certificate=issuer,
        )

    def _execute_flow(
        self,
        domain: str,
        private_key: bytes | None,
    ) -> tuple[bytes, bytes]:
        """Create order, complete challenges, finalize, download.

        Returns ``(chain_pem, private_key_pem)``.
        """
        from acmeow import ChallengeType, Identifier, KeyType  # noqa: PLC0415

        log.info("ACME: creating order for %s", domain)
        self._client.create_order([Identifier.dns(domain)])

        log.info("ACME: completing %s challenges for %s", self._acme.challenge_type, domain)
        self._client.complete_challenges(
            self._handler,
            challenge_type=ChallengeType(self._acme.challenge_type),
        )

        if private_key is not None:
            log.info("ACME: finalising order with existing key")
            self._client.finalize_order(csr=build_csr(private_key, domain))
        else:
            log.info("ACME: finalising order with new %s key", self._acme.key_type)
            self._client.finalize_order(
                key_type=KeyType(self._acme.key_type),
                common_name=domain,
            )

        chain_pem, key_pem = self._client.get_certificate()
        if private_key is not None:
            key_pem = private_key
        elif key_pem is None:
            msg = f"ACME server returned no private key for {domain}"
            raise IssuanceError(msg)

        log.info("ACME: certificate issued for %s", domain)
        return _as_bytes(chain_pem), _as_bytes(key_pem)

    def close(self) -> None:
        """Close the ACMEOW client and remove any temporary account state."""
        try:
            if self._client is not None:
                self._client.close()
                self._client = None
        finally:
            if self._tempdir is not None:
                self._tempdir.cleanup()
                self._tempdir = None
                log.debug("ACME: removed temporary account directory")


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode() if isinstance(value, str) else value


def _is_retryable(exc: Exception) -> bool:
    """Determine whether an ACME error is retryable via heuristics."""
    exc_name = type(exc).__name__.lower()
    retryable_patterns = (
        "timeout",
        "connection",
        "network",
        "ratelimit",
        "server",
        "503",
        "429",
    )
    msg = str(exc).lower()
    return any(p in exc_name or p in msg for p in retryable_patterns)
