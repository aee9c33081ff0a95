"""Exception classes for zipload.

All errors carry a short machine-readable code, a human message and an
optional details mapping, so CLI callers can log them as structured events.
"""

from zipload.exceptions.base import (
    ConfigurationError,
    ResourceNotFoundError,
    ValidationError,
    ZiploadError,
)

__all__ = [
    "ZiploadError",
    "ValidationError",
    "ConfigurationError",
    "ResourceNotFoundError",
]
