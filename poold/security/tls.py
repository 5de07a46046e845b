"""
TLS identity lifecycle for the daemon's listeners.

On start-up the certificate pair is loaded, created first when missing, and
regenerated when it has expired (or, with ``tls_auto_refresh``, when its
subject alternative names no longer match the host). The result is a server
side TLS configuration and the credentials a local gRPC client needs to trust
that server.
"""

import ssl
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Tuple

import grpc

from .certs import KeyPair, file_exists, gen_cert_pair, is_outdated, load_cert
from ..config.defaults import DEFAULT_AUTOGEN_VALIDITY, SELF_SIGNED_ORGANIZATION
from ..config.settings import PooldConfig
from ..logger import get_logger

logger = get_logger(__name__)

# Protocols offered through ALPN. gRPC and the REST gateway both speak HTTP/2.
ALPN_PROTOCOLS = ["h2"]


@dataclass(frozen=True)
class ServerTLSConfig:
    """Server side TLS material, shared by every listener of the process."""

    ssl_context: ssl.SSLContext
    grpc_credentials: grpc.ServerCredentials
    key_pair: KeyPair
    alpn_protocols: List[str] = field(default_factory=lambda: list(ALPN_PROTOCOLS))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _generate(cfg: PooldConfig) -> None:
    gen_cert_pair(
        SELF_SIGNED_ORGANIZATION,
        cfg.tls_cert_path,
        cfg.tls_key_path,
        cfg.tls_extra_ips,
        cfg.tls_extra_domains,
        cfg.tls_disable_autofill,
        DEFAULT_AUTOGEN_VALIDITY,
    )


def load_cert_with_create(cfg: PooldConfig):
    """
    Load the TLS certificate from disk, creating the pair first if neither
    the certificate nor the key exists.

    A lone certificate or key is not repaired; loading it fails.
    """
    if not file_exists(cfg.tls_cert_path) and not file_exists(cfg.tls_key_path):
        logger.info("Generating TLS certificates", cert_path=cfg.tls_cert_path)
        _generate(cfg)
        logger.info("Done generating TLS certificates")

    return load_cert(cfg.tls_cert_path, cfg.tls_key_path)


def server_tls_config(cfg: PooldConfig, key_pair: KeyPair) -> ServerTLSConfig:
    """Build the server side TLS configuration for a loaded key pair."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    # ssl only loads a chain from files. The pair was already checked by
    # load_cert, so this reads the same files again.
    context.load_cert_chain(certfile=cfg.tls_cert_path, keyfile=cfg.tls_key_path)
    context.set_alpn_protocols(ALPN_PROTOCOLS)

    credentials = grpc.ssl_server_credentials([(key_pair.key_pem, key_pair.cert_pem)])

    return ServerTLSConfig(
        ssl_context=context,
        grpc_credentials=credentials,
        key_pair=key_pair,
    )


def client_credentials(cert_path: str) -> grpc.ChannelCredentials:
    """Credentials that trust exactly the certificate stored at ``cert_path``."""
    with open(cert_path, "rb") as f:
        return grpc.ssl_channel_credentials(root_certificates=f.read())


def get_tls_config(cfg: PooldConfig) -> Tuple[ServerTLSConfig, grpc.ChannelCredentials]:
    """
    Load or create the certificate pair and refresh it when necessary, then
    return the server TLS configuration and the matching client credentials.

    Errors from reading, writing or parsing the pair are raised unchanged.
    """
    key_pair, certificate = load_cert_with_create(cfg)

    refresh = False
    if _utcnow() > certificate.not_valid_after_utc:
        logger.info(
            "TLS certificate is expired, generating a new one",
            not_after=certificate.not_valid_after_utc.isoformat(),
        )
        refresh = True
    elif cfg.tls_auto_refresh and is_outdated(
        certificate,
        cfg.tls_extra_ips,
        cfg.tls_extra_domains,
        cfg.tls_disable_autofill,
    ):
        logger.info("TLS certificate is outdated, generating a new one")
        refresh = True

    if refresh:
        # The new pair replaces the old files in place. It is not checked
        # for expiry again.
        _generate(cfg)
        key_pair, _ = load_cert(cfg.tls_cert_path, cfg.tls_key_path)

    server_config = server_tls_config(cfg, key_pair)

    # Read the certificate from disk again for the client side trust root.
    return server_config, client_credentials(cfg.tls_cert_path)
