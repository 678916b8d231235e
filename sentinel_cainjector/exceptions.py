"""Error taxonomy for the trust bundle injector."""

from typing import Optional


class InjectorError(Exception):
    """Base class for injector errors."""


class NotFoundError(InjectorError):
    """The requested resource does not exist."""


class BundleValidationError(InjectorError):
    """The canonical bundle content is malformed."""

    def __init__(self, message: str, resource: Optional[str] = None):
        super().__init__(message)
        self.resource = resource


class StoreError(InjectorError):
    """Store, transport or authorization failure that is not retried in place."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ConflictError(StoreError):
    """Optimistic-concurrency rejection of a write."""

    def __init__(self, message: str):
        super().__init__(message, status=409)


class CanceledError(InjectorError):
    """The pass was cancelled or ran past its deadline."""
