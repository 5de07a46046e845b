"""
poold - configuration and TLS bootstrap for the Pool client daemon

Validates the daemon configuration, namespaces its data per Bitcoin network
and provides the self-signed TLS identity used by the RPC and REST listeners.

Usage:
    >>> from poold.config import PooldConfig, validate
    >>> from poold.security import get_tls_config

    >>> cfg = validate(PooldConfig(network="testnet"))
    >>> server_tls, client_creds = get_tls_config(cfg)
"""

__version__ = "0.1.0"

# Configuration system
from .config import LndConfig, Network, PooldConfig, load_config, validate

# Exceptions
from .exceptions import ConfigurationError, PooldError

# Logging
from .logger import LogConfig, get_logger, setup_logging

# TLS identity
from .security import ServerTLSConfig, get_tls_config

__all__ = [
    "__version__",
    # Configuration
    "LndConfig",
    "Network",
    "PooldConfig",
    "load_config",
    "validate",
    # TLS
    "ServerTLSConfig",
    "get_tls_config",
    # Logging
    "LogConfig",
    "get_logger",
    "setup_logging",
    # Exceptions
    "ConfigurationError",
    "PooldError",
]
