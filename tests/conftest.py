"""Root conftest for the SSLKEEPER test suite."""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from cryptography import x509  # noqa: E402
from cryptography.hazmat.primitives import hashes, serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import ec  # noqa: E402
from cryptography.x509.oid import NameOID  # noqa: E402

from sslkeeper.certs.cert_utils import parse_certificate, subject_alt_names  # noqa: E402
from sslkeeper.core.errors import RemoteStoreError, StorageError  # noqa: E402
from sslkeeper.issuance.base import IssuanceClient, IssuedMaterial  # noqa: E402
from sslkeeper.remote.base import RemoteCertificateEntry, RemoteCertificateStore  # noqa: E402
from sslkeeper.storage.base import BlobStorage  # noqa: E402

# ---------------------------------------------------------------------------
# Real certificate material
# ---------------------------------------------------------------------------


def make_key_pem() -> bytes:
    key = ec.generate_private_key(ec.SECP256R1())
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def make_cert_pem(
    common_name: str,
    *,
    sans: list[str] | None = None,
    expires_in: timedelta = timedelta(days=90),
    key_pem: bytes | None = None,
) -> tuple[bytes, bytes]:
    """Return ``(cert_pem, key_pem)`` for a self-signed certificate.

    An empty *common_name* yields a certificate with an empty subject.
    """
    if key_pem is None:
        key_pem = make_key_pem()
    key = serialization.load_pem_private_key(key_pem, password=None)
    attrs = [x509.NameAttribute(NameOID.COMMON_NAME, common_name)] if common_name else []
    subject = x509.Name(attrs)
    now = datetime.now(UTC)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=30))
        .not_valid_after(now + expires_in)
    )
    names = sans if sans is not None else [common_name]
    if names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(d) for d in names]),
            critical=False,
        )
    cert = builder.sign(key, hashes.SHA256())
    return cert.public_bytes(serialization.Encoding.PEM), key_pem


@pytest.fixture()
def cert_factory():
    """Return :func:`make_cert_pem` for building real test certificates."""
    return make_cert_pem


@pytest.fixture()
def key_factory():
    return make_key_pem


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeBlobStorage(BlobStorage):
    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.reads: list[str] = []
        self.fail_writes = False

    def read(self, key: str) -> bytes | None:
        self.reads.append(key)
        return self.blobs.get(key)

    def write(self, key: str, data: bytes) -> None:
        if self.fail_writes:
            msg = f"write of {key} refused"
            raise StorageError(msg)
        self.blobs[key] = data


class FakeRemoteStore(RemoteCertificateStore):
    """Remote store holding entries and PEM details in memory."""

    def __init__(self) -> None:
        self.entries: list[RemoteCertificateEntry] = []
        self.details: dict[int, bytes] = {}
        self.uploads: list[tuple[str, bytes, bytes]] = []
        self.deleted: list[int] = []
        self.search_calls: list[tuple] = []
        self.fail_upload = False
        self.fail_delete: set[int] = set()
        self._next_id = 1000

    def add(self, name, cert_pem, *, domains=(), status="ISSUED", expires_at=None) -> int:
        self._next_id += 1
        entry = RemoteCertificateEntry(
            id=self._next_id,
            name=name,
            domains=tuple(domains),
            status=status,
            expires_at=expires_at,
        )
        self.entries.append(entry)
        self.details[entry.id] = cert_pem
        return entry.id

    def search(self, order_type, status=None, keyword=None):
        self.search_calls.append((str(order_type), status and str(status), keyword))
        result = []
        for entry in self.entries:
            if status is not None and entry.status != str(status):
                continue
            if keyword and keyword not in entry.name and not any(keyword in d for d in entry.domains):
                continue
            result.append(entry)
        return result

    def get_detail(self, cert_id):
        try:
            return self.details[cert_id]
        except KeyError:
            msg = f"no certificate {cert_id}"
            raise RemoteStoreError(msg) from None

    def upload(self, name, cert, key):
        if self.fail_upload:
            msg = f"upload of {name} refused"
            raise RemoteStoreError(msg, retryable=True)
        self.uploads.append((name, cert, key))
        domains = subject_alt_names(parse_certificate(cert))
        return self.add(name, cert, domains=domains)

    def delete(self, cert_id):
        if cert_id in self.fail_delete:
            msg = f"delete of {cert_id} refused"
            raise RemoteStoreError(msg)
        self.deleted.append(cert_id)
        self.entries = [e for e in self.entries if e.id != cert_id]


class FakeIssuer(IssuanceClient):
    """Issues real self-signed certificates and records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, bytes | None]] = []
        self.error: Exception | None = None

    def obtain(self, domain, private_key=None):
        self.calls.append((domain, private_key))
        if self.error is not None:
            raise self.error
        cert_pem, key_pem = make_cert_pem(domain, key_pem=private_key)
        issuer_pem, _ = make_cert_pem("Fake Intermediate CA", sans=[], expires_in=timedelta(days=365))
        return IssuedMaterial(
            private_key=key_pem,
            certificate=cert_pem,
            issuer_certificate=issuer_pem,
        )


@pytest.fixture()
def blob_storage() -> FakeBlobStorage:
    return FakeBlobStorage()


@pytest.fixture()
def remote_store() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture()
def issuer() -> FakeIssuer:
    return FakeIssuer()


@pytest.fixture()
def manager(remote_store, blob_storage, issuer):
    from sslkeeper.certs.manager import CertificateManager

    return CertificateManager(remote_store, blob_storage, issuer)


# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data(tmp_path: Path) -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "storage": {
            "backend": "filesystem",
            "filesystem": {"root": str(tmp_path / "blobs")},
        },
        "acme": {"email": "ops@example.com"},
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# Config singleton cleanup: autouse so every test gets a fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the KeeperConfig singleton before and after every test."""
    from sslkeeper.config.keeper_config import KeeperConfig

    KeeperConfig.reset()
    yield
    KeeperConfig.reset()


@pytest.fixture(autouse=True)
def restore_sslkeeper_logger():
    """Undo ``configure_logging`` so caplog keeps seeing package records."""
    yield
    root = logging.getLogger("sslkeeper")
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)
