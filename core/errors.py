"""
Shared error types for core services.
"""


class ValidationIssue(ValueError):
    def __init__(
        self,
        message: str,
        field: str = "unknown",
        error_type: str = "invalid",
        data: dict | None = None,
    ):
        super().__init__(message)
        self.field = field
        self.error_type = error_type
        self.data = data


class RecordNotFound(LookupError):
    """Raised by the gateway when a scoped single-row lookup matches nothing."""


class StorageError(RuntimeError):
    """Raised when the datastore rejects or fails a query."""


class AuthenticationError(RuntimeError):
    """Raised when a bearer token is missing or cannot be verified."""


class EmbeddingProviderError(RuntimeError):
    """Raised when the embedding provider is unavailable."""
