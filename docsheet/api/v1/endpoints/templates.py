from typing import Annotated, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from docsheet.api.dependencies import get_template_service
from docsheet.api.errors import http_error, not_found
from docsheet.core.exceptions import AppError
from docsheet.schemas.requests import (
    TemplateCreateRequest,
    TemplateDuplicateRequest,
    TemplateFromDocumentRequest,
    TemplateInstantiateRequest,
    TemplateUpdateRequest,
)
from docsheet.schemas.responses import ApiResponse
from docsheet.services.template_service import TemplateService
from docsheet.utils.logging import get_logger
from docsheet.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List templates",
    operation_id="list_templates",
)
async def list_templates(
    request: Request,
    user_id: str = Query(...),
    search: Optional[str] = Query(None, description="Matches name or description"),
    sort_by: Literal["name", "created_at"] = Query("created_at"),
    descending: bool = Query(True),
    template_service: Annotated[TemplateService, Depends(get_template_service)] = None,
) -> ApiResponse:
    try:
        templates = await template_service.list_templates(
            user_id, search=search, sort_by=sort_by, descending=descending
        )
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=templates,
        message="Templates retrieved successfully",
        request=request
    )


@router.post(
    "/",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save field schema as template",
    operation_id="create_template",
)
async def create_template(
    request: Request,
    payload: TemplateCreateRequest,
    template_service: Annotated[TemplateService, Depends(get_template_service)] = None,
) -> ApiResponse:
    """Save a field list as a template with fresh field ids."""
    try:
        template = await template_service.save_as_template(
            user_id=payload.user_id,
            name=payload.name,
            fields=payload.fields,
            description=payload.description,
            category=payload.category,
        )
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=template,
        message="Template created successfully",
        request=request
    )


@router.post(
    "/from-document/{document_id}",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create template from document",
    operation_id="create_template_from_document",
)
async def create_template_from_document(
    request: Request,
    document_id: UUID,
    payload: TemplateFromDocumentRequest,
    template_service: Annotated[TemplateService, Depends(get_template_service)] = None,
) -> ApiResponse:
    try:
        template = await template_service.template_from_document(
            document_id,
            user_id=payload.user_id,
            name=payload.name,
            description=payload.description,
        )
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=template,
        message="Template created successfully",
        request=request
    )


@router.patch(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Update template",
    operation_id="update_template",
)
async def update_template(
    request: Request,
    template_id: UUID,
    payload: TemplateUpdateRequest,
    template_service: Annotated[TemplateService, Depends(get_template_service)] = None,
) -> ApiResponse:
    try:
        template = await template_service.update_template(
            template_id,
            name=payload.name,
            description=payload.description,
            fields=payload.fields,
        )
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=template,
        message="Template updated successfully",
        request=request
    )


@router.delete(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Delete template",
    operation_id="delete_template",
)
async def delete_template(
    request: Request,
    template_id: UUID,
    template_service: Annotated[TemplateService, Depends(get_template_service)] = None,
) -> ApiResponse:
    try:
        success = await template_service.delete_template(template_id)
    except AppError as e:
        raise http_error(e, request)

    if not success:
        raise not_found("Template Not Found", f"Template with ID {template_id} not found", request)

    return create_api_response(
        data=None,
        message="Template deleted successfully",
        request=request
    )


@router.post(
    "/{template_id}/duplicate",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Duplicate template",
    operation_id="duplicate_template",
)
async def duplicate_template(
    request: Request,
    template_id: UUID,
    payload: Optional[TemplateDuplicateRequest] = None,
    template_service: Annotated[TemplateService, Depends(get_template_service)] = None,
) -> ApiResponse:
    """Copy a template under a "(Copy)" name with fresh field ids."""
    try:
        template = await template_service.duplicate_template(
            template_id, user_id=payload.user_id if payload else None
        )
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=template,
        message="Template duplicated successfully",
        request=request
    )


@router.post(
    "/{template_id}/documents",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create document from template",
    operation_id="create_document_from_template",
)
async def create_document_from_template(
    request: Request,
    template_id: UUID,
    payload: TemplateInstantiateRequest,
    template_service: Annotated[TemplateService, Depends(get_template_service)] = None,
) -> ApiResponse:
    try:
        document = await template_service.create_document_from_template(
            template_id,
            user_id=payload.user_id,
            name=payload.name,
            description=payload.description,
        )
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=document,
        message="Document created from template",
        request=request
    )
