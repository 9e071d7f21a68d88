class ServiceError(Exception):
    """Base exception for service layer failures."""

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class SnapshotUnavailableError(ServiceError):
    """Raised when the salon data snapshot cannot be loaded."""

    def __init__(self, message: str, source: str | None = None, *, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.source = source
