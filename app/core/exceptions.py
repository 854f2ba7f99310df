"""Custom exception hierarchy."""

class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class AuthError(AppError):
    """Raised when no authenticated actor is present or the actor lacks a role."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class RenderError(AppError):
    """Raised when a PDF renderer reports failure or returns no payload."""
    pass


class StorageError(AppError):
    """Raised when an object storage call fails."""
    pass


class PersistenceError(AppError):
    """Raised when a database operation fails."""
    pass


class DocumentNotFoundError(AppError):
    """Raised when a submission or document is not found."""
    pass


class RegenerationError(AppError):
    """Raised when one or more documents of a regeneration batch failed.

    ``results`` holds the per-document outcome of the whole batch so callers
    can report which documents failed and which were written.
    """
    def __init__(self, message: str, results=None, original_error: Exception = None):
        super().__init__(message, original_error=original_error)
        self.results = list(results or [])
