"""Translation of service errors into HTTP problem details."""

from fastapi import HTTPException, Request, status

from docsheet.core.exceptions import (
    AppError,
    ConfigurationError,
    DocumentNotFoundError,
    RowNotFoundError,
    TemplateNotFoundError,
    ValidationError,
)
from docsheet.utils.logging import get_logger
from docsheet.utils.responses import create_error_detail

LOGGER = get_logger(__name__)

_STATUS_BY_ERROR = [
    (DocumentNotFoundError, status.HTTP_404_NOT_FOUND, "Document Not Found"),
    (TemplateNotFoundError, status.HTTP_404_NOT_FOUND, "Template Not Found"),
    (RowNotFoundError, status.HTTP_404_NOT_FOUND, "Row Not Found"),
    (ValidationError, status.HTTP_400_BAD_REQUEST, "Validation Error"),
    (ConfigurationError, status.HTTP_400_BAD_REQUEST, "Configuration Error"),
]


def http_error(error: AppError, request: Request) -> HTTPException:
    """Build the HTTPException matching an application error."""
    for error_type, status_code, title in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            break
    else:
        status_code, title = status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error"
        LOGGER.error(f"Unhandled application error: {error.message}", exc_info=error)

    error_detail = create_error_detail(
        title=title,
        status=status_code,
        detail=error.message,
        request=request,
    )
    return HTTPException(status_code=status_code, detail=error_detail.model_dump(mode="json"))


def not_found(title: str, detail: str, request: Request) -> HTTPException:
    error_detail = create_error_detail(
        title=title,
        status=status.HTTP_404_NOT_FOUND,
        detail=detail,
        request=request,
    )
    return HTTPException(status_code=404, detail=error_detail.model_dump(mode="json"))
