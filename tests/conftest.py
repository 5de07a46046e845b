"""
Global pytest configuration and fixtures for poold testing.

Every test works below a temporary base directory and with a clean
``POOLD_*`` environment, so nothing is read from or written to the user's
real data directories.
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Sequence

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from poold.config import PooldConfig, validate


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop any POOLD_* variables inherited from the shell."""
    for name in list(os.environ):
        if name.upper().startswith("POOLD_"):
            monkeypatch.delenv(name)


@pytest.fixture
def base_dir(tmp_path: Path) -> Path:
    """Provide a base directory for the daemon's data."""
    path = tmp_path / "pool"
    path.mkdir()
    return path


@pytest.fixture
def make_config(base_dir: Path) -> Callable[..., PooldConfig]:
    """Build a raw configuration rooted in the temporary base directory."""

    def _make(**kwargs) -> PooldConfig:
        kwargs.setdefault("base_dir", str(base_dir))
        return PooldConfig(**kwargs)

    return _make


@pytest.fixture
def tls_config(make_config) -> Callable[..., PooldConfig]:
    """Build a normalized configuration ready for the TLS lifecycle."""

    def _make(**kwargs) -> PooldConfig:
        return validate(make_config(**kwargs))

    return _make


def write_certificate_pair(
    cert_path: str,
    key_path: str,
    not_before: datetime,
    not_after: datetime,
    dns_names: Sequence[str] = ("localhost",),
) -> x509.Certificate:
    """Write a self-signed pair with the given validity window."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, dns_names[0])])
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(d) for d in dns_names]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )

    Path(cert_path).write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
    Path(key_path).write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return certificate


@pytest.fixture
def expired_pair() -> Callable[[str, str], x509.Certificate]:
    """Write a certificate pair that expired yesterday."""

    def _write(cert_path: str, key_path: str) -> x509.Certificate:
        now = datetime.now(timezone.utc)
        return write_certificate_pair(
            cert_path,
            key_path,
            not_before=now - timedelta(days=30),
            not_after=now - timedelta(days=1),
        )

    return _write
