"""
Normalization of a raw poold configuration.

``validate`` cleans every path, rejects options that cannot be combined,
namespaces the data and log directories by network and resolves which lnd
macaroon to use. The result is a new configuration; the input is not
modified.
"""

import os

from . import defaults
from .exceptions import (
    ConfigConflictError,
    InvalidConfigurationError,
    MissingConfigurationError,
)
from .paths import clean_and_expand_path
from .settings import LndConfig, Network, PooldConfig
from ..logger import get_logger

logger = get_logger(__name__)

# Options derived from base_dir. Checked in this order, first conflict wins.
BASE_DIR_DERIVED_FIELDS = ("log_dir", "tls_cert_path", "tls_key_path", "macaroon_path")

_DEFAULT_AUCTION_SERVERS = {
    Network.MAINNET: defaults.MAINNET_SERVER,
    Network.TESTNET: defaults.TESTNET_SERVER,
}


def validate(cfg: PooldConfig) -> PooldConfig:
    """
    Clean up the paths in ``cfg`` and validate it.

    Returns the normalized configuration. ``base_dir`` and ``log_dir`` are
    created on disk; filesystem errors are raised unchanged.

    Raises:
        ConfigConflictError: two options that exclude each other are set
        MissingConfigurationError: no lnd macaroon path can be resolved
        InvalidConfigurationError: an option is not allowed on the network
    """
    network = cfg.network.value

    if cfg.fake_auth and cfg.network == Network.MAINNET:
        raise InvalidConfigurationError(
            "fake_auth cannot be set on mainnet", field="fake_auth"
        )

    base_dir = clean_and_expand_path(cfg.base_dir)
    log_dir = clean_and_expand_path(cfg.log_dir)
    tls_cert_path = clean_and_expand_path(cfg.tls_cert_path)
    tls_key_path = clean_and_expand_path(cfg.tls_key_path)
    macaroon_path = clean_and_expand_path(cfg.macaroon_path)

    # base_dir replaces the log, TLS and macaroon locations. Fail hard rather
    # than silently dropping a value the user set.
    if cfg.is_set("base_dir"):
        for field in BASE_DIR_DERIVED_FIELDS:
            if cfg.is_set(field):
                raise ConfigConflictError(
                    f"basedir overwrites {field}, please only set one value",
                    field=field,
                )

        log_dir = os.path.join(base_dir, defaults.DEFAULT_LOG_DIRNAME)

    # Namespace the log and base directory per network, the same way the
    # data directory is.
    log_dir = os.path.join(log_dir, network)
    base_dir = os.path.join(base_dir, network)

    if not cfg.is_set("tls_cert_path"):
        tls_cert_path = os.path.join(base_dir, defaults.DEFAULT_TLS_CERT_FILENAME)
    if not cfg.is_set("tls_key_path"):
        tls_key_path = os.path.join(base_dir, defaults.DEFAULT_TLS_KEY_FILENAME)
    if not cfg.is_set("macaroon_path"):
        macaroon_path = os.path.join(base_dir, defaults.DEFAULT_MACAROON_FILENAME)

    os.makedirs(base_dir, exist_ok=True)
    os.makedirs(log_dir, exist_ok=True)

    lnd = resolve_lnd_macaroon(cfg.lnd, cfg.network)

    auction_server = cfg.auction_server or _DEFAULT_AUCTION_SERVERS.get(cfg.network, "")

    normalized = cfg.model_copy(
        update={
            "base_dir": base_dir,
            "log_dir": log_dir,
            "tls_cert_path": tls_cert_path,
            "tls_key_path": tls_key_path,
            "macaroon_path": macaroon_path,
            "auction_server": auction_server,
            "lnd": lnd,
        }
    )

    logger.debug(
        "Configuration normalized",
        network=network,
        base_dir=base_dir,
        log_dir=log_dir,
        lnd_macaroon_path=lnd.macaroon_path,
    )
    return normalized


def resolve_lnd_macaroon(lnd: LndConfig, network: Network) -> LndConfig:
    """
    Resolve the single lnd macaroon to use.

    The deprecated ``macaroon_dir`` is migrated to ``macaroon_path`` pointing
    at the admin macaroon inside it, and then cleared.
    """
    macaroon_dir = lnd.macaroon_dir
    macaroon_path = lnd.macaroon_path

    if macaroon_dir and lnd.is_set("macaroon_path"):
        raise ConfigConflictError(
            "use --lnd.macaroonpath only", field="lnd.macaroon_path"
        )

    if macaroon_dir:
        # Only a single macaroon can be handed to the lnd client. The old
        # directory option selects the admin macaroon in it.
        macaroon_path = os.path.join(
            clean_and_expand_path(macaroon_dir), defaults.DEFAULT_LND_MACAROON
        )
        macaroon_dir = ""
    elif not macaroon_path:
        raise MissingConfigurationError(
            "must specify --lnd.macaroonpath", field="lnd.macaroon_path"
        )
    elif lnd.is_set("macaroon_path"):
        macaroon_path = clean_and_expand_path(macaroon_path)
    elif network.value != defaults.DEFAULT_NETWORK:
        # Only the network was given, follow it with the default location.
        macaroon_path = defaults.lnd_macaroon_path(network.value)

    return lnd.model_copy(
        update={"macaroon_dir": macaroon_dir, "macaroon_path": macaroon_path}
    )
