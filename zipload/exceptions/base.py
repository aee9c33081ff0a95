from __future__ import annotations

from typing import Any


class ZiploadError(Exception):
    """Base exception for zipload.

    Attributes:
        code: Machine-readable error code (e.g. ``INVALID_STAGE``)
        message: Human readable description
        details: Extra context for logging
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} ({self.details})"
        return f"{self.code}: {self.message}"


class ValidationError(ZiploadError):
    """Raised when user-provided input (stages, thresholds, payloads) is invalid."""


class ConfigurationError(ZiploadError):
    """Raised when the run configuration cannot be resolved."""


class ResourceNotFoundError(ZiploadError):
    """Raised when a referenced file or resource does not exist."""
