"""Upload proxy endpoint.

Responses are relayed as-is rather than wrapped in the API envelope, so
failures use a flat ``{"error": true, "message": ..., "code": ...}`` body.
"""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from docsheet.api.dependencies import get_upload_proxy_service
from docsheet.core.exceptions import (
    EndpointError,
    FileTooLargeError,
    MissingFileError,
    NetworkError,
    NotConfiguredError,
    ValidationError,
)
from docsheet.services.upload_proxy import ProxyUpload, UploadProxyService
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


def _error_response(status_code: int, message: str, code: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": True, "message": message, "code": code, **extra},
    )


@router.post(
    "",
    summary="Forward a file to the extraction endpoint",
    operation_id="proxy_upload",
)
async def proxy_upload(
    request: Request,
    proxy_service: Annotated[UploadProxyService, Depends(get_upload_proxy_service)] = None,
) -> JSONResponse:
    """Forward the multipart ``file`` part and every other form field.

    The target endpoint comes from server-side configuration. A slow
    endpoint yields 202 with ``processing_in_background`` set.
    """
    form = await request.form()

    upload: Optional[ProxyUpload] = None
    form_fields: Dict[str, str] = {}
    for name, value in form.multi_items():
        if isinstance(value, UploadFile):
            if name == "file" and upload is None:
                upload = ProxyUpload(
                    filename=value.filename or "upload",
                    content=await value.read(),
                    content_type=value.content_type or "application/octet-stream",
                )
            continue
        form_fields[name] = value

    try:
        result = await proxy_service.forward(upload, form_fields)
    except FileTooLargeError as e:
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            e.message,
            "too_large",
            max_size=f"{e.max_bytes // (1024 * 1024)}MB",
        )
    except NotConfiguredError as e:
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            e.message,
            "not_configured",
            settings_path=e.settings_path,
        )
    except MissingFileError as e:
        return _error_response(status.HTTP_400_BAD_REQUEST, e.message, "missing_file")
    except ValidationError as e:
        return _error_response(status.HTTP_400_BAD_REQUEST, e.message, "invalid_request")
    except EndpointError as e:
        return _error_response(
            e.status_code,
            e.message,
            "endpoint_error",
            status=e.status_code,
            details=e.body,
        )
    except NetworkError as e:
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, e.message, "network_error")
    except Exception as e:
        LOGGER.error("Upload proxy failed unexpectedly", exc_info=True)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            f"Internal server error: {str(e)}",
            "internal_error",
        )

    return JSONResponse(status_code=result.status_code, content=result.payload)
