"""
Default values for the poold configuration.

The TLS and macaroon defaults point into the mainnet namespace of the default
base directory. Normalization moves them into the active network's namespace
unless the user set them explicitly.
"""

import os
from datetime import timedelta

from .paths import app_data_dir

# DEFAULT_BASE_DIR is the root data directory where poold stores all its data.
# Below this directory the logs and network directories are created.
DEFAULT_BASE_DIR = app_data_dir("pool")

DEFAULT_NETWORK = "mainnet"

DEFAULT_LOG_FILENAME = "poold.log"
DEFAULT_LOG_LEVEL = "info"
DEFAULT_LOG_DIRNAME = "logs"
DEFAULT_LOG_DIR = os.path.join(DEFAULT_BASE_DIR, DEFAULT_LOG_DIRNAME)

DEFAULT_MAX_LOG_FILES = 3
DEFAULT_MAX_LOG_FILE_SIZE = 10  # MB

DEFAULT_MIN_BACKOFF = timedelta(seconds=5)
DEFAULT_MAX_BACKOFF = timedelta(minutes=1)

DEFAULT_RPC_LISTEN = "localhost:12010"
DEFAULT_REST_LISTEN = "localhost:8281"

DEFAULT_TLS_CERT_FILENAME = "tls.cert"
DEFAULT_TLS_KEY_FILENAME = "tls.key"

DEFAULT_TLS_CERT_PATH = os.path.join(
    DEFAULT_BASE_DIR, DEFAULT_NETWORK, DEFAULT_TLS_CERT_FILENAME
)
DEFAULT_TLS_KEY_PATH = os.path.join(
    DEFAULT_BASE_DIR, DEFAULT_NETWORK, DEFAULT_TLS_KEY_FILENAME
)

SELF_SIGNED_ORGANIZATION = "pool autogenerated cert"

# 14 months of 30 days.
DEFAULT_AUTOGEN_VALIDITY = timedelta(days=14 * 30)

DEFAULT_MACAROON_FILENAME = "pool.macaroon"
DEFAULT_MACAROON_PATH = os.path.join(
    DEFAULT_BASE_DIR, DEFAULT_NETWORK, DEFAULT_MACAROON_FILENAME
)

# Macaroon picked from the deprecated lnd macaroon directory.
DEFAULT_LND_MACAROON = "admin.macaroon"

DEFAULT_LND_HOST = "localhost:10009"
DEFAULT_LND_DIR = app_data_dir("lnd")


def lnd_macaroon_path(network: str) -> str:
    """Return the default lnd admin macaroon location for ``network``."""
    return os.path.join(
        DEFAULT_LND_DIR, "data", "chain", "bitcoin", network, DEFAULT_LND_MACAROON
    )


DEFAULT_LND_MACAROON_PATH = lnd_macaroon_path(DEFAULT_NETWORK)

MAINNET_SERVER = "pool.lightning.finance:12010"
TESTNET_SERVER = "test.pool.lightning.finance:12010"

DEFAULT_LSAT_MAX_ROUTING_FEE = 50  # sat
