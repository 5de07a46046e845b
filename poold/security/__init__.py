"""
TLS identity for poold.

This module provides:
- Generation of the self-signed certificate/key pair
- Loading and expiry/refresh handling at start-up
- Server TLS configuration and client gRPC credentials
"""

from .certs import (
    KeyPair,
    file_exists,
    gen_cert_pair,
    interface_ips,
    is_outdated,
    load_cert,
    subject_alt_names,
)
from .tls import (
    ALPN_PROTOCOLS,
    ServerTLSConfig,
    client_credentials,
    get_tls_config,
    load_cert_with_create,
    server_tls_config,
)

__all__ = [
    "ALPN_PROTOCOLS",
    "KeyPair",
    "ServerTLSConfig",
    "client_credentials",
    "file_exists",
    "gen_cert_pair",
    "get_tls_config",
    "interface_ips",
    "is_outdated",
    "load_cert",
    "load_cert_with_create",
    "server_tls_config",
    "subject_alt_names",
]
