"""
Self-signed certificate primitives.

Generates, loads and inspects the ECDSA certificate/key pair that secures
the daemon's RPC and REST listeners. Both files are PEM encoded; the key is
an unencrypted PKCS#8 private key readable only by its owner.
"""

import ipaddress
import os
import socket
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Sequence, Tuple, Union

import psutil
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

LOCALHOST = "localhost"

# Names gRPC uses when dialing over unix sockets and in-memory buffers.
INTERNAL_DNS_NAMES = ("unix", "unixpacket", "bufconn")

LOOPBACK_IPS = ("127.0.0.1", "::1")

CERT_FILE_MODE = 0o644
KEY_FILE_MODE = 0o600


@dataclass(frozen=True)
class KeyPair:
    """A certificate and its private key, as read from disk."""

    cert_pem: bytes
    key_pem: bytes
    certificate: x509.Certificate
    private_key: PrivateKeyTypes


def file_exists(path: str) -> bool:
    """Whether ``path`` exists on disk."""
    return os.path.exists(path)


def interface_ips() -> List[IPAddress]:
    """Return the addresses bound to the local network interfaces."""
    ips: List[IPAddress] = []
    for addresses in psutil.net_if_addrs().values():
        for address in addresses:
            if address.family not in (socket.AF_INET, socket.AF_INET6):
                continue
            # Link local IPv6 addresses carry a zone suffix, e.g. fe80::1%eth0.
            try:
                ips.append(ipaddress.ip_address(address.address.split("%", 1)[0]))
            except ValueError:
                continue
    return ips


def _unique(items):
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def subject_alt_names(
    extra_ips: Sequence[str],
    extra_domains: Sequence[str],
    disable_autofill: bool,
) -> Tuple[str, List[str], List[IPAddress]]:
    """
    Work out the subject of a new certificate.

    Returns the common name, the DNS names and the IP addresses to embed.
    Unless autofill is disabled the host name, ``localhost``, the loopback
    and all interface addresses are added to the configured extras.
    """
    extra = [ipaddress.ip_address(ip) for ip in extra_ips]

    if disable_autofill:
        common_name = extra_domains[0] if extra_domains else LOCALHOST
        return common_name, _unique(extra_domains), _unique(extra)

    host = socket.gethostname() or LOCALHOST

    dns_names = [host]
    if host != LOCALHOST:
        dns_names.append(LOCALHOST)
    dns_names.extend(extra_domains)
    dns_names.extend(INTERNAL_DNS_NAMES)

    ips: List[IPAddress] = [ipaddress.ip_address(ip) for ip in LOOPBACK_IPS]
    ips.extend(interface_ips())
    ips.extend(extra)

    return host, _unique(dns_names), _unique(ips)


def gen_cert_pair(
    organization: str,
    cert_path: str,
    key_path: str,
    extra_ips: Sequence[str],
    extra_domains: Sequence[str],
    disable_autofill: bool,
    validity: timedelta,
) -> None:
    """
    Generate a self-signed certificate and key and write them to disk.

    The pair is written to temporary files next to the targets and then
    moved over them, so an existing pair is replaced without ever being
    deleted first.
    """
    common_name, dns_names, ip_addresses = subject_alt_names(
        extra_ips, extra_domains, disable_autofill
    )

    private_key = ec.generate_private_key(ec.SECP256R1())

    now = datetime.now(timezone.utc)
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )

    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        # Back-date by a day to tolerate clock skew on the client.
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + validity)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                key_encipherment=True,
                key_cert_sign=True,
                key_agreement=False,
                content_commitment=False,
                data_encipherment=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False
        )
    )

    general_names = [x509.DNSName(dns) for dns in dns_names] + [
        x509.IPAddress(ip) for ip in ip_addresses
    ]
    if general_names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName(general_names), critical=False
        )

    certificate = builder.sign(private_key, hashes.SHA256())

    cert_pem = certificate.public_bytes(serialization.Encoding.PEM)
    key_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

    _write_pair(cert_path, cert_pem, key_path, key_pem)


def _stage(path: str, data: bytes, mode: int) -> str:
    """Write ``data`` to a temporary file beside ``path`` and return its name."""
    directory = os.path.dirname(path) or "."
    fd, tmp_path = tempfile.mkstemp(
        dir=directory, prefix=f".{os.path.basename(path)}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
    except BaseException:
        os.unlink(tmp_path)
        raise
    return tmp_path


def _write_pair(cert_path: str, cert_pem: bytes, key_path: str, key_pem: bytes) -> None:
    tmp_cert = _stage(cert_path, cert_pem, CERT_FILE_MODE)
    try:
        tmp_key = _stage(key_path, key_pem, KEY_FILE_MODE)
    except BaseException:
        os.unlink(tmp_cert)
        raise

    os.replace(tmp_key, key_path)
    os.replace(tmp_cert, cert_path)


def _public_key_der(key) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def load_cert(cert_path: str, key_path: str) -> Tuple[KeyPair, x509.Certificate]:
    """
    Read a certificate and key pair from disk.

    Raises:
        OSError: either file cannot be read
        ValueError: either file is malformed or the key does not belong to
            the certificate
    """
    with open(cert_path, "rb") as f:
        cert_pem = f.read()
    with open(key_path, "rb") as f:
        key_pem = f.read()

    certificate = x509.load_pem_x509_certificate(cert_pem)
    private_key = serialization.load_pem_private_key(key_pem, password=None)

    if _public_key_der(private_key.public_key()) != _public_key_der(
        certificate.public_key()
    ):
        raise ValueError("tls: private key does not match public key")

    key_pair = KeyPair(
        cert_pem=cert_pem,
        key_pem=key_pem,
        certificate=certificate,
        private_key=private_key,
    )
    return key_pair, certificate


def is_outdated(
    certificate: x509.Certificate,
    extra_ips: Sequence[str],
    extra_domains: Sequence[str],
    disable_autofill: bool,
) -> bool:
    """
    Whether the certificate's subject alternative names differ from the ones
    a freshly generated certificate would carry.
    """
    _, dns_names, ip_addresses = subject_alt_names(
        extra_ips, extra_domains, disable_autofill
    )

    try:
        san = certificate.extensions.get_extension_for_class(
            x509.SubjectAlternativeName
        ).value
    except x509.ExtensionNotFound:
        return bool(dns_names or ip_addresses)

    return set(san.get_values_for_type(x509.DNSName)) != set(dns_names) or set(
        san.get_values_for_type(x509.IPAddress)
    ) != set(ip_addresses)
