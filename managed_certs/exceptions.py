"""Exceptions raised by the managed certificate controller."""

from typing import Optional

__all__ = [
    "ManagedCertsException",
    "ProviderError",
    "NotFoundError",
    "QuotaExceededError",
    "BackendError",
    "StateInitializationError",
    "CacheSyncTimeout",
]


class ManagedCertsException(Exception):
    """Generic base exception used by the controller."""


class ProviderError(ManagedCertsException):
    """Raised when a call to the certificate provisioning API fails."""


class NotFoundError(ProviderError):
    """Raised when an SslCertificate does not exist."""


class QuotaExceededError(ProviderError):
    """Raised when the project has no SslCertificate quota left."""


class BackendError(ProviderError):
    """Raised on any other provisioning API failure."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class StateInitializationError(ManagedCertsException):
    """Raised when the certificate state cannot be rebuilt on startup."""


class CacheSyncTimeout(ManagedCertsException):
    """Raised when the informer cache does not sync before the deadline."""
