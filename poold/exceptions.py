"""
Core exceptions for poold.

This module defines the exception hierarchy raised by the configuration
layer. Filesystem and certificate parsing failures are not wrapped and reach
the caller as the original ``OSError`` or ``ValueError``.
"""

from typing import Any, Dict, Optional


class PooldError(Exception):
    """Base exception for all poold errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary representation."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ConfigurationError(PooldError):
    """Raised when configuration is invalid or missing."""

    pass
