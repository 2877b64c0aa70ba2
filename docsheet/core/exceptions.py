"""Custom exception hierarchy."""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class MissingFileError(ValidationError):
    """Raised when an upload request carries no file part."""
    pass


class FileTooLargeError(ValidationError):
    """Raised when an uploaded file exceeds the proxy size cap."""

    def __init__(self, max_bytes: int, size: Optional[int] = None):
        max_mb = max_bytes // (1024 * 1024)
        super().__init__(f"File too large (max {max_mb}MB)")
        self.max_bytes = max_bytes
        self.size = size


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class NotConfiguredError(ConfigurationError):
    """Raised when no extraction endpoint has been configured."""

    def __init__(self, message: str = "API endpoint not configured", settings_path: str = "/settings"):
        super().__init__(message)
        self.settings_path = settings_path


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class EndpointError(APIClientError):
    """Raised when the extraction endpoint answers with a non-success status."""

    def __init__(self, status_code: int, message: Optional[str] = None, body: Optional[str] = None):
        super().__init__(message or f"Endpoint responded with {status_code}")
        self.status_code = status_code
        self.body = body


class NetworkError(APIClientError):
    """Raised when the extraction endpoint cannot be reached."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class DocumentNotFoundError(AppError):
    """Raised when a document is not found."""
    pass


class TemplateNotFoundError(AppError):
    """Raised when a template is not found."""
    pass


class RowNotFoundError(AppError):
    """Raised when a row is not found."""
    pass
