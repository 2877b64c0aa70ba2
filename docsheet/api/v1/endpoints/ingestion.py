"""File ingestion endpoints.

A file is uploaded for review first; the reviewed values are then
confirmed and committed as a row of the document.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Request, UploadFile, status

from docsheet.api.dependencies import get_file_ingestion_service, get_workspace
from docsheet.api.errors import http_error
from docsheet.core.exceptions import AppError
from docsheet.schemas.requests import FileConfirmRequest
from docsheet.schemas.responses import ApiResponse
from docsheet.services.file_ingestion import FileIngestionService, IngestionResult
from docsheet.services.workspace import Workspace
from docsheet.utils.logging import get_logger
from docsheet.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/{document_id}/files",
    response_model=ApiResponse,
    summary="Extract a row preview from a file",
    operation_id="ingest_document_file",
)
async def ingest_file(
    request: Request,
    document_id: UUID,
    file: UploadFile = File(..., description="File to extract a row from"),
    workspace: Annotated[Workspace, Depends(get_workspace)] = None,
    ingestion_service: Annotated[FileIngestionService, Depends(get_file_ingestion_service)] = None,
) -> ApiResponse:
    """Send the file through the upload proxy and return the reviewable result.

    Nothing is stored yet. Endpoint failures come back as a simulated
    preview with ``error`` set.
    """
    try:
        reconciler = await workspace.open_document(document_id)
        content = await file.read()
        result = await ingestion_service.upload_file(
            filename=file.filename or "upload",
            content=content,
            fields=reconciler.document.fields,
            existing_rows=[row.data for row in reconciler.rows],
            content_type=file.content_type or "application/octet-stream",
        )
    except AppError as e:
        raise http_error(e, request)

    return create_api_response(
        data=result,
        message="File processed",
        request=request
    )


@router.post(
    "/{document_id}/files/confirm",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Commit a reviewed file extraction as a row",
    operation_id="confirm_document_file",
)
async def confirm_file(
    request: Request,
    document_id: UUID,
    payload: FileConfirmRequest,
    workspace: Annotated[Workspace, Depends(get_workspace)] = None,
    ingestion_service: Annotated[FileIngestionService, Depends(get_file_ingestion_service)] = None,
) -> ApiResponse:
    """Add the reviewed values as a pending row and commit it."""
    try:
        reconciler = await workspace.open_document(document_id)
        pending = ingestion_service.confirm(
            IngestionResult(file_metadata=payload.file_metadata),
            reconciler,
            data=payload.data,
        )
        row = await reconciler.commit_row(pending)
    except AppError as e:
        raise http_error(e, request)

    LOGGER.info(
        f"File row committed: document_id={document_id}, row_id={row.id}",
        extra={"file_name": payload.file_metadata.filename},
    )
    return create_api_response(
        data=row,
        message="Row created from file",
        request=request
    )
