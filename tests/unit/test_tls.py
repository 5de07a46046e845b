"""
Unit tests for the TLS identity lifecycle.
"""

import ipaddress
import os
import socket
import ssl
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import grpc
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from poold.config.defaults import SELF_SIGNED_ORGANIZATION
from poold.security import (
    ALPN_PROTOCOLS,
    ServerTLSConfig,
    gen_cert_pair,
    get_tls_config,
    is_outdated,
    load_cert,
    load_cert_with_create,
)


def _public_key(cert_path: str) -> bytes:
    certificate = x509.load_pem_x509_certificate(Path(cert_path).read_bytes())
    return certificate.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )


def _san(certificate: x509.Certificate) -> x509.SubjectAlternativeName:
    return certificate.extensions.get_extension_for_class(
        x509.SubjectAlternativeName
    ).value


class TestGetTLSConfig:
    """Test the start-up load, create and refresh sequence."""

    def test_creates_pair_when_absent(self, tls_config):
        config = tls_config()
        assert not os.path.exists(config.tls_cert_path)
        assert not os.path.exists(config.tls_key_path)

        server_tls, client_creds = get_tls_config(config)

        assert os.path.isfile(config.tls_cert_path)
        assert os.path.isfile(config.tls_key_path)
        assert isinstance(server_tls, ServerTLSConfig)
        assert isinstance(server_tls.ssl_context, ssl.SSLContext)
        assert isinstance(server_tls.grpc_credentials, grpc.ServerCredentials)
        assert isinstance(client_creds, grpc.ChannelCredentials)

    def test_server_config_offers_only_http2(self, tls_config):
        server_tls, _ = get_tls_config(tls_config())

        assert server_tls.alpn_protocols == ["h2"]
        assert ALPN_PROTOCOLS == ["h2"]
        assert server_tls.ssl_context.minimum_version == ssl.TLSVersion.TLSv1_2

    def test_server_config_carries_loaded_pair(self, tls_config):
        config = tls_config()

        server_tls, _ = get_tls_config(config)

        assert server_tls.key_pair.cert_pem == Path(config.tls_cert_path).read_bytes()
        assert server_tls.key_pair.key_pem == Path(config.tls_key_path).read_bytes()

    def test_existing_valid_pair_is_reused(self, tls_config):
        config = tls_config()

        get_tls_config(config)
        cert_before = Path(config.tls_cert_path).read_bytes()
        key_before = Path(config.tls_key_path).read_bytes()

        get_tls_config(config)

        assert Path(config.tls_cert_path).read_bytes() == cert_before
        assert Path(config.tls_key_path).read_bytes() == key_before

    def test_expired_pair_is_regenerated(self, tls_config, expired_pair):
        config = tls_config()
        expired = expired_pair(config.tls_cert_path, config.tls_key_path)
        old_public_key = _public_key(config.tls_cert_path)

        server_tls, _ = get_tls_config(config)

        fresh = x509.load_pem_x509_certificate(Path(config.tls_cert_path).read_bytes())
        assert fresh.not_valid_after_utc > datetime.now(timezone.utc)
        assert fresh.serial_number != expired.serial_number
        assert _public_key(config.tls_cert_path) != old_public_key
        assert server_tls.key_pair.certificate == fresh

    def test_regeneration_leaves_no_temporary_files(self, tls_config, expired_pair):
        config = tls_config()
        expired_pair(config.tls_cert_path, config.tls_key_path)

        get_tls_config(config)

        assert sorted(os.listdir(config.base_dir)) == ["tls.cert", "tls.key"]

    def test_half_state_is_not_repaired(self, tls_config):
        config = tls_config()
        get_tls_config(config)
        os.remove(config.tls_key_path)
        cert_before = Path(config.tls_cert_path).read_bytes()

        with pytest.raises(FileNotFoundError):
            get_tls_config(config)

        assert Path(config.tls_cert_path).read_bytes() == cert_before
        assert not os.path.exists(config.tls_key_path)

    def test_corrupt_certificate_is_not_repaired(self, tls_config):
        config = tls_config()
        get_tls_config(config)
        Path(config.tls_cert_path).write_text("garbage")

        with pytest.raises(ValueError):
            get_tls_config(config)

        assert Path(config.tls_cert_path).read_text() == "garbage"

    def test_mismatched_key_is_rejected(self, tls_config, tmp_path):
        config = tls_config()
        get_tls_config(config)
        other_cert = str(tmp_path / "other.cert")
        other_key = str(tmp_path / "other.key")
        gen_cert_pair(
            SELF_SIGNED_ORGANIZATION, other_cert, other_key, [], [], True, timedelta(days=1)
        )
        Path(config.tls_key_path).write_bytes(Path(other_key).read_bytes())

        with pytest.raises(ValueError, match="does not match"):
            get_tls_config(config)

    def test_auto_refresh_on_changed_domains(self, tls_config):
        config = tls_config(tls_disable_autofill=True, tls_extra_domains=["a.test"])
        get_tls_config(config)

        refreshed = config.model_copy(
            update={"tls_extra_domains": ["b.test"], "tls_auto_refresh": True}
        )
        get_tls_config(refreshed)

        certificate = x509.load_pem_x509_certificate(
            Path(config.tls_cert_path).read_bytes()
        )
        assert _san(certificate).get_values_for_type(x509.DNSName) == ["b.test"]

    def test_changed_domains_ignored_without_auto_refresh(self, tls_config):
        config = tls_config(tls_disable_autofill=True, tls_extra_domains=["a.test"])
        get_tls_config(config)
        cert_before = Path(config.tls_cert_path).read_bytes()

        get_tls_config(config.model_copy(update={"tls_extra_domains": ["b.test"]}))

        assert Path(config.tls_cert_path).read_bytes() == cert_before

    def test_missing_directory_propagates(self, tls_config, tmp_path):
        config = tls_config().model_copy(
            update={
                "tls_cert_path": str(tmp_path / "missing" / "tls.cert"),
                "tls_key_path": str(tmp_path / "missing" / "tls.key"),
            }
        )

        with pytest.raises(FileNotFoundError):
            get_tls_config(config)


class TestLoadCertWithCreate:
    """Test the load-or-create step on its own."""

    def test_returns_pair_and_certificate(self, tls_config):
        config = tls_config(tls_disable_autofill=True, tls_extra_domains=["pool.test"])

        key_pair, certificate = load_cert_with_create(config)

        assert key_pair.certificate == certificate
        assert certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "pool.test"

    def test_does_not_check_expiry(self, tls_config, expired_pair):
        config = tls_config()
        expired = expired_pair(config.tls_cert_path, config.tls_key_path)

        _, certificate = load_cert_with_create(config)

        assert certificate.serial_number == expired.serial_number


class TestGenCertPair:
    """Test certificate generation."""

    def test_autofill_adds_host_identity(self, tmp_path):
        cert_path = str(tmp_path / "tls.cert")
        key_path = str(tmp_path / "tls.key")

        gen_cert_pair(
            SELF_SIGNED_ORGANIZATION, cert_path, key_path, [], [], False, timedelta(days=1)
        )

        _, certificate = load_cert(cert_path, key_path)
        san = _san(certificate)
        dns_names = san.get_values_for_type(x509.DNSName)
        ips = san.get_values_for_type(x509.IPAddress)
        assert socket.gethostname() in dns_names
        assert "localhost" in dns_names
        assert ipaddress.ip_address("127.0.0.1") in ips

    def test_disabled_autofill_uses_only_extras(self, tmp_path):
        cert_path = str(tmp_path / "tls.cert")
        key_path = str(tmp_path / "tls.key")

        gen_cert_pair(
            SELF_SIGNED_ORGANIZATION,
            cert_path,
            key_path,
            [],
            ["pool.example.com"],
            True,
            timedelta(days=1),
        )

        _, certificate = load_cert(cert_path, key_path)
        san = _san(certificate)
        assert san.get_values_for_type(x509.DNSName) == ["pool.example.com"]
        assert san.get_values_for_type(x509.IPAddress) == []
        assert (
            certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value
            == "pool.example.com"
        )

    def test_extra_ips_are_embedded(self, tmp_path):
        cert_path = str(tmp_path / "tls.cert")
        key_path = str(tmp_path / "tls.key")

        gen_cert_pair(
            SELF_SIGNED_ORGANIZATION,
            cert_path,
            key_path,
            ["10.0.0.7", "fd00::7"],
            [],
            True,
            timedelta(days=1),
        )

        _, certificate = load_cert(cert_path, key_path)
        assert set(_san(certificate).get_values_for_type(x509.IPAddress)) == {
            ipaddress.ip_address("10.0.0.7"),
            ipaddress.ip_address("fd00::7"),
        }

    def test_subject_and_validity(self, tmp_path):
        cert_path = str(tmp_path / "tls.cert")
        key_path = str(tmp_path / "tls.key")
        validity = timedelta(days=420)

        before = datetime.now(timezone.utc)
        gen_cert_pair(SELF_SIGNED_ORGANIZATION, cert_path, key_path, [], [], True, validity)

        _, certificate = load_cert(cert_path, key_path)
        organization = certificate.subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)
        assert organization[0].value == SELF_SIGNED_ORGANIZATION
        assert certificate.issuer == certificate.subject
        assert certificate.not_valid_after_utc >= before + validity - timedelta(seconds=1)
        assert certificate.not_valid_before_utc < before

    @pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX permissions")
    def test_key_is_private(self, tmp_path):
        cert_path = str(tmp_path / "tls.cert")
        key_path = str(tmp_path / "tls.key")

        gen_cert_pair(SELF_SIGNED_ORGANIZATION, cert_path, key_path, [], [], True, timedelta(days=1))

        assert os.stat(key_path).st_mode & 0o777 == 0o600
        assert os.stat(cert_path).st_mode & 0o777 == 0o644


class TestIsOutdated:
    """Test detection of outdated subject alternative names."""

    def test_same_names_are_current(self, tmp_path):
        cert_path = str(tmp_path / "tls.cert")
        key_path = str(tmp_path / "tls.key")
        gen_cert_pair(
            SELF_SIGNED_ORGANIZATION, cert_path, key_path, ["10.0.0.1"], ["a.test"], True, timedelta(days=1)
        )
        _, certificate = load_cert(cert_path, key_path)

        assert not is_outdated(certificate, ["10.0.0.1"], ["a.test"], True)

    def test_changed_names_are_outdated(self, tmp_path):
        cert_path = str(tmp_path / "tls.cert")
        key_path = str(tmp_path / "tls.key")
        gen_cert_pair(
            SELF_SIGNED_ORGANIZATION, cert_path, key_path, ["10.0.0.1"], ["a.test"], True, timedelta(days=1)
        )
        _, certificate = load_cert(cert_path, key_path)

        assert is_outdated(certificate, ["10.0.0.2"], ["a.test"], True)
        assert is_outdated(certificate, ["10.0.0.1"], ["a.test", "b.test"], True)
