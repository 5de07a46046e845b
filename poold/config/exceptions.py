"""Configuration-related exceptions for poold."""

from typing import Optional

from ..exceptions import ConfigurationError


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(
            message,
            error_code="CONFIG_INVALID",
            details={"field": field} if field else None,
        )
        self.field = field


class ConfigConflictError(InvalidConfigurationError):
    """Raised when two mutually exclusive options are both set."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message, field=field)
        self.error_code = "CONFIG_CONFLICT"


class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration is missing."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(
            message,
            error_code="CONFIG_MISSING",
            details={"field": field} if field else None,
        )
        self.field = field
