from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from docsheet.api.dependencies import get_document_service
from docsheet.api.errors import http_error, not_found
from docsheet.core.exceptions import AppError
from docsheet.schemas.requests import (
    DocumentCreateRequest,
    DocumentUpdateRequest,
    RowCreateRequest,
    RowUpdateRequest,
    SimulateExtractionRequest,
)
from docsheet.schemas.responses import ApiResponse
from docsheet.services.document_service import DocumentService
from docsheet.utils.logging import get_logger
from docsheet.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List documents",
    operation_id="list_documents",
)
async def list_documents(
    request: Request,
    user_id: str = Query(..., description="Owner of the documents"),
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    """List documents of a user, rows included."""
    try:
        documents = await document_service.list_documents(user_id)
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=documents,
        message="Documents retrieved successfully",
        request=request
    )


@router.post(
    "/",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create document",
    operation_id="create_document",
)
async def create_document(
    request: Request,
    payload: DocumentCreateRequest,
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    """Create a document from a validated field schema."""
    try:
        document = await document_service.create_document(
            user_id=payload.user_id,
            name=payload.name,
            fields=payload.fields,
            description=payload.description,
        )
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=document,
        message="Document created successfully",
        request=request
    )


@router.get(
    "/{document_id}",
    response_model=ApiResponse,
    summary="Get document details",
    operation_id="get_document",
)
async def get_document(
    request: Request,
    document_id: UUID,
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    """Retrieve a document with its durable rows."""
    try:
        document = await document_service.get_document(document_id)
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=document,
        message="Document details retrieved successfully",
        request=request
    )


@router.patch(
    "/{document_id}",
    response_model=ApiResponse,
    summary="Update document",
    operation_id="update_document",
)
async def update_document(
    request: Request,
    document_id: UUID,
    payload: DocumentUpdateRequest,
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    try:
        document = await document_service.update_document(
            document_id,
            name=payload.name,
            description=payload.description,
            fields=payload.fields,
        )
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=document,
        message="Document updated successfully",
        request=request
    )


@router.delete(
    "/{document_id}",
    response_model=ApiResponse,
    summary="Delete document",
    operation_id="delete_document",
)
async def delete_document(
    request: Request,
    document_id: UUID,
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    """Delete a document and all of its rows."""
    try:
        success = await document_service.delete_document(document_id)
    except AppError as e:
        raise http_error(e, request)

    if not success:
        raise not_found("Document Not Found", f"Document with ID {document_id} not found", request)

    return create_api_response(
        data=None,
        message="Document deleted successfully",
        request=request
    )


@router.post(
    "/{document_id}/rows",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add row",
    operation_id="create_document_row",
)
async def create_row(
    request: Request,
    document_id: UUID,
    payload: RowCreateRequest,
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    """Persist a row; the response carries its durable id."""
    try:
        row = await document_service.add_row(document_id, payload.data, payload.file_metadata)
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=row,
        message="Row created successfully",
        request=request
    )


@router.patch(
    "/{document_id}/rows/{row_id}",
    response_model=ApiResponse,
    summary="Update row",
    operation_id="update_document_row",
)
async def update_row(
    request: Request,
    document_id: UUID,
    row_id: UUID,
    payload: RowUpdateRequest,
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    try:
        row = await document_service.update_row(document_id, row_id, payload.data)
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=row,
        message="Row updated successfully",
        request=request
    )


@router.delete(
    "/{document_id}/rows/{row_id}",
    response_model=ApiResponse,
    summary="Delete row",
    operation_id="delete_document_row",
)
async def delete_row(
    request: Request,
    document_id: UUID,
    row_id: UUID,
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    try:
        success = await document_service.delete_row(document_id, row_id)
    except AppError as e:
        raise http_error(e, request)

    if not success:
        raise not_found("Row Not Found", f"Row with ID {row_id} not found", request)

    return create_api_response(
        data=None,
        message="Row deleted successfully",
        request=request
    )


@router.post(
    "/{document_id}/simulate-extraction",
    response_model=ApiResponse,
    summary="Preview simulated extraction",
    operation_id="simulate_document_extraction",
)
async def simulate_extraction(
    request: Request,
    document_id: UUID,
    payload: SimulateExtractionRequest,
    document_service: Annotated[DocumentService, Depends(get_document_service)] = None,
) -> ApiResponse:
    """Fill the document's fields with placeholder values for a file."""
    try:
        data = await document_service.simulate_extraction(
            document_id, payload.filename, payload.mime_type
        )
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=data,
        message="Simulated extraction generated",
        request=request
    )
