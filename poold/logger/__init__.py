"""
Structured logging for poold.

This module provides:
- Structured logging through structlog on top of the standard library
- JSON or console output
- A size-rotated log file inside the network namespaced log directory
"""

import logging
import logging.config
import os
import sys
import traceback
from enum import Enum
from typing import TYPE_CHECKING, Optional

import structlog
from pythonjsonlogger import jsonlogger

from ..exceptions import ConfigurationError

if TYPE_CHECKING:
    from ..config.settings import PooldConfig


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ServiceInfoProcessor:
    """Processor to add service information to log records."""

    def __init__(self, service_name: str, network: Optional[str] = None):
        self.service_name = service_name
        self.network = network

    def __call__(self, logger, method_name, event_dict):
        event_dict["service_name"] = self.service_name
        if self.network:
            event_dict["network"] = self.network
        return event_dict


class ExceptionProcessor:
    """Processor to format exceptions in log records."""

    def __call__(self, logger, method_name, event_dict):
        exc_info = event_dict.pop("exc_info", None)
        if exc_info:
            if exc_info is True:
                exc_info = sys.exc_info()

            if exc_info[0] is not None:
                event_dict["exception"] = {
                    "type": exc_info[0].__name__,
                    "message": str(exc_info[1]),
                    "traceback": "".join(traceback.format_tb(exc_info[2]))
                    if exc_info[2]
                    else "",
                }
        return event_dict


class LogConfig:
    """Configuration class for logging setup."""

    def __init__(
        self,
        service_name: str = "poold",
        level: LogLevel = LogLevel.INFO,
        format_type: str = "console",
        log_file: Optional[str] = None,
        max_log_files: int = 3,
        max_log_file_size: int = 10,
        network: Optional[str] = None,
    ):
        self.service_name = service_name
        self.level = level
        self.format_type = format_type
        self.log_file = log_file
        self.max_log_files = max_log_files
        self.max_log_file_size = max_log_file_size
        self.network = network

    @classmethod
    def from_config(cls, config: "PooldConfig", format_type: str = "console") -> "LogConfig":
        """Build a logging setup from a normalized daemon configuration."""
        from ..config.defaults import DEFAULT_LOG_FILENAME

        return cls(
            level=config.log_level,
            format_type=format_type,
            log_file=os.path.join(config.log_dir, DEFAULT_LOG_FILENAME),
            max_log_files=config.max_log_files,
            max_log_file_size=config.max_log_file_size,
            network=config.network.value,
        )


def setup_logging(config: LogConfig) -> None:
    """
    Setup structured logging with the given configuration.

    Args:
        config: LogConfig instance with logging configuration
    """
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        ServiceInfoProcessor(config.service_name, config.network),
        ExceptionProcessor(),
    ]

    if config.format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    handlers = ["console"]
    if config.log_file:
        handlers.append("file")

    formatter = "json" if config.format_type == "json" else "standard"
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": jsonlogger.JsonFormatter,
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
            },
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": config.level.value,
                "formatter": formatter,
                "stream": sys.stdout,
            },
        },
        "loggers": {
            "": {
                "handlers": handlers,
                "level": config.level.value,
                "propagate": False,
            },
        },
    }

    if config.log_file:
        # A zero file count disables rotation.
        logging_config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": config.level.value,
            "formatter": formatter,
            "filename": config.log_file,
            "maxBytes": config.max_log_file_size * 1024 * 1024
            if config.max_log_files
            else 0,
            "backupCount": config.max_log_files,
            "encoding": "utf-8",
        }

    try:
        logging.config.dictConfig(logging_config)
    except (ValueError, TypeError, AttributeError, ImportError) as e:
        raise ConfigurationError(f"Failed to configure logging: {e}")


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name, typically __name__

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
