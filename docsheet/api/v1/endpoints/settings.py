from typing import Annotated

from fastapi import APIRouter, Depends, Request

from docsheet.api.dependencies import get_settings_service
from docsheet.api.errors import http_error
from docsheet.core.exceptions import AppError
from docsheet.schemas.requests import ApiEndpointUpdateRequest
from docsheet.schemas.responses import ApiResponse
from docsheet.services.settings_service import SettingsService
from docsheet.utils.responses import create_api_response

router = APIRouter()


@router.get(
    "/api-endpoint",
    response_model=ApiResponse,
    summary="Check extraction endpoint configuration",
    operation_id="check_api_endpoint_config",
)
async def check_config(
    request: Request,
    settings_service: Annotated[SettingsService, Depends(get_settings_service)] = None,
) -> ApiResponse:
    """Report whether an extraction endpoint is configured, without revealing it."""
    try:
        result = await settings_service.check_config()
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=result,
        message="Configuration checked",
        request=request
    )


@router.put(
    "/api-endpoint",
    response_model=ApiResponse,
    summary="Set extraction endpoint",
    operation_id="set_api_endpoint",
)
async def set_api_endpoint(
    request: Request,
    payload: ApiEndpointUpdateRequest,
    settings_service: Annotated[SettingsService, Depends(get_settings_service)] = None,
) -> ApiResponse:
    try:
        result = await settings_service.set_api_endpoint(payload.api_endpoint)
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=result,
        message="Extraction endpoint saved",
        request=request
    )
