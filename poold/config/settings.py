"""
Configuration models for poold.

Values come from keyword arguments, ``POOLD_*`` environment variables or a
YAML file. The models keep track of which fields were supplied so that
normalization can tell an explicit override from a default.
"""

import ipaddress
import re
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import defaults
from .exceptions import InvalidConfigurationError
from ..exceptions import ConfigurationError
from ..logger import LogLevel


class Network(str, Enum):
    """Bitcoin networks poold can run on."""

    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIMNET = "simnet"
    REGTEST = "regtest"


# Daemon level names mapped onto the stdlib levels.
DEBUG_LEVELS = {
    "trace": LogLevel.DEBUG,
    "debug": LogLevel.DEBUG,
    "info": LogLevel.INFO,
    "warn": LogLevel.WARNING,
    "error": LogLevel.ERROR,
    "critical": LogLevel.CRITICAL,
    "off": LogLevel.CRITICAL,
}

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Union[str, int, float, timedelta]) -> timedelta:
    """
    Parse a duration such as ``5s``, ``1m`` or ``1h30m``.

    Plain numbers are taken as seconds.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)

    text = str(value).strip()
    try:
        return timedelta(seconds=float(text))
    except ValueError:
        pass

    pos = 0
    seconds = 0.0
    for match in _DURATION_RE.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if not text or pos != len(text):
        raise ValueError(f"invalid duration {value!r}, valid time units are {{s, m, h}}")
    return timedelta(seconds=seconds)


def format_duration(value: timedelta) -> str:
    """Render a duration the way parse_duration reads it back."""
    seconds = value.total_seconds()
    if seconds.is_integer():
        return f"{int(seconds)}s"
    return f"{int(round(seconds * 1000))}ms"


def parse_debug_level(value: str) -> LogLevel:
    """
    Validate a debug level specification and return its global level.

    Accepts a single level (``info``) or comma separated
    ``<subsystem>=<level>`` pairs, optionally led by a global level.
    """
    level = DEBUG_LEVELS[defaults.DEFAULT_LOG_LEVEL]
    for part in value.split(","):
        part = part.strip()
        if "=" in part:
            subsystem, _, sub_level = part.partition("=")
            if not subsystem.strip() or sub_level.strip().lower() not in DEBUG_LEVELS:
                raise ValueError(f"invalid debug level pair {part!r}")
            continue
        if part.lower() not in DEBUG_LEVELS:
            raise ValueError(f"invalid debug level {part!r}")
        level = DEBUG_LEVELS[part.lower()]
    return level


class LndConfig(BaseModel):
    """Connection settings for the lnd backend."""

    host: str = Field(default=defaults.DEFAULT_LND_HOST, description="lnd instance rpc address")

    # Directory that holds lnd's macaroons. Replaced by macaroon_path, which
    # names the single macaroon to use.
    macaroon_dir: str = Field(default="", description="DEPRECATED: Use macaroon_path.")
    macaroon_path: str = Field(
        default=defaults.DEFAULT_LND_MACAROON_PATH,
        description=(
            "The full path to the single macaroon to use, either the "
            "admin.macaroon or a custom baked one. Cannot be specified at the "
            "same time as macaroon_dir."
        ),
    )
    tls_path: str = Field(default="", description="Path to lnd tls certificate")

    def is_set(self, name: str) -> bool:
        """Whether ``name`` was supplied rather than left at its default."""
        return name in self.model_fields_set


class PooldConfig(BaseSettings):
    """Main poold configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POOLD_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    insecure: bool = Field(default=False, description="disable tls")
    network: Network = Field(default=Network(defaults.DEFAULT_NETWORK), description="network to run on")
    auction_server: str = Field(default="", description="auction server address host:port")
    proxy: str = Field(
        default="",
        description="The host:port of a SOCKS proxy through which all connections to the pool server will be established over",
    )
    tls_path_auct_srv: str = Field(default="", description="Path to auction server tls certificate")
    rpc_listen: str = Field(default=defaults.DEFAULT_RPC_LISTEN, description="Address to listen on for gRPC clients")
    rest_listen: str = Field(default=defaults.DEFAULT_REST_LISTEN, description="Address to listen on for REST clients")
    base_dir: str = Field(
        default=defaults.DEFAULT_BASE_DIR,
        description=(
            "The base directory where pool stores all its data. Cannot be "
            "combined with log_dir, macaroon_path, tls_cert_path or tls_key_path."
        ),
    )

    log_dir: str = Field(default=defaults.DEFAULT_LOG_DIR, description="Directory to log output.")
    max_log_files: int = Field(
        default=defaults.DEFAULT_MAX_LOG_FILES, ge=0, description="Maximum logfiles to keep (0 for no rotation)"
    )
    max_log_file_size: int = Field(
        default=defaults.DEFAULT_MAX_LOG_FILE_SIZE, ge=1, description="Maximum logfile size in MB"
    )

    min_backoff: timedelta = Field(
        default=defaults.DEFAULT_MIN_BACKOFF, description="Shortest backoff when reconnecting to the server."
    )
    max_backoff: timedelta = Field(
        default=defaults.DEFAULT_MAX_BACKOFF, description="Longest backoff when reconnecting to the server."
    )
    debug_level: str = Field(
        default=defaults.DEFAULT_LOG_LEVEL,
        description="Logging level {trace, debug, info, warn, error, critical} or <subsystem>=<level> pairs",
    )

    tls_cert_path: str = Field(
        default=defaults.DEFAULT_TLS_CERT_PATH,
        description="Path to write the TLS certificate for pool's RPC and REST services.",
    )
    tls_key_path: str = Field(
        default=defaults.DEFAULT_TLS_KEY_PATH,
        description="Path to write the TLS private key for pool's RPC and REST services.",
    )
    tls_extra_ips: list[str] = Field(
        default_factory=list, description="Extra IPs to add to the generated certificate."
    )
    tls_extra_domains: list[str] = Field(
        default_factory=list, description="Extra domains to add to the generated certificate."
    )
    tls_auto_refresh: bool = Field(
        default=False, description="Re-generate TLS certificate and key if the IPs or domains are changed."
    )
    tls_disable_autofill: bool = Field(
        default=False,
        description=(
            "Do not include the interface IPs or the system hostname in TLS "
            "certificate, use first tls extra domain as Common Name instead, if set."
        ),
    )

    macaroon_path: str = Field(
        default=defaults.DEFAULT_MACAROON_PATH,
        description="Path to write the macaroon for pool's RPC and REST services if it doesn't exist.",
    )

    new_nodes_only: bool = Field(
        default=False,
        description="Only accept channels from nodes that the connected lnd node doesn't already have open or pending channels with.",
    )
    lsat_max_routing_fee: int = Field(
        default=defaults.DEFAULT_LSAT_MAX_ROUTING_FEE,
        ge=0,
        description="The maximum amount in satoshis we are willing to pay in routing fees for the LSAT auth token.",
    )
    profile: str = Field(
        default="", description="Enable HTTP profiling on given port -- port must be between 1024 and 65535"
    )
    fake_auth: bool = Field(
        default=False, description="Disable LSAT authentication and use a fake LSAT ID. For testing only."
    )
    tx_label_prefix: str = Field(
        default="", description="Prefix for the label of every transaction poold creates."
    )

    lnd: LndConfig = Field(default_factory=LndConfig)

    @field_validator("min_backoff", "max_backoff", mode="before")
    @classmethod
    def validate_backoff(cls, v: Any) -> timedelta:
        """Accept Go style duration strings."""
        return parse_duration(v)

    @field_serializer("min_backoff", "max_backoff")
    def serialize_backoff(self, v: timedelta) -> str:
        return format_duration(v)

    @field_validator("debug_level")
    @classmethod
    def validate_debug_level(cls, v: str) -> str:
        parse_debug_level(v)
        return v

    @field_validator("tls_extra_ips")
    @classmethod
    def validate_extra_ips(cls, v: list[str]) -> list[str]:
        for ip in v:
            ipaddress.ip_address(ip)
        return v

    @field_validator("profile")
    @classmethod
    def validate_profile(cls, v: str) -> str:
        if v and not (v.isdigit() and 1024 <= int(v) <= 65535):
            raise ValueError("profile port must be between 1024 and 65535")
        return v

    @model_validator(mode="after")
    def validate_backoff_range(self) -> "PooldConfig":
        if self.min_backoff > self.max_backoff:
            raise ValueError("min_backoff must not exceed max_backoff")
        return self

    def is_set(self, name: str) -> bool:
        """Whether ``name`` was supplied rather than left at its default."""
        return name in self.model_fields_set

    @property
    def log_level(self) -> LogLevel:
        """Global stdlib level derived from ``debug_level``."""
        return parse_debug_level(self.debug_level)

    @classmethod
    def from_yaml(cls, file_path: Union[str, Path]) -> "PooldConfig":
        """Load configuration from YAML file."""
        try:
            with open(file_path) as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {file_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML configuration: {e}")
        except ValidationError as e:
            raise InvalidConfigurationError(f"Configuration validation failed: {e}")

    @classmethod
    def from_env(cls, env_prefix: str = "POOLD_") -> "PooldConfig":
        """Load configuration from environment variables."""
        try:
            return cls(_env_prefix=env_prefix)
        except ValidationError as e:
            raise InvalidConfigurationError(
                f"Environment configuration validation failed: {e}"
            )

    def to_yaml(self, file_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        try:
            with open(file_path, "w") as f:
                yaml.safe_dump(
                    self.model_dump(mode="json", exclude_unset=True),
                    f,
                    default_flow_style=False,
                    indent=2,
                )
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}")
