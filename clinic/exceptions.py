"""Exception types raised by the clinic core."""


class ClinicError(Exception):
    """Base class for clinic errors."""


class PersistenceError(ClinicError):
    """Raised when a collection cannot be read from or written to storage."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Failed to persist '{key}': {message}")


class StorageQuotaExceededError(PersistenceError):
    """Raised when a write would exceed the storage quota."""


class AuthenticationError(ClinicError):
    """Raised when login credentials are rejected."""


class AuthorizationError(ClinicError):
    """Raised when a principal is not allowed to perform an operation."""


class RateLimitExceededError(ClinicError):
    """Raised when too many failed login attempts were made."""
