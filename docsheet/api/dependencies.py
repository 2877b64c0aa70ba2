"""FastAPI dependency providers shared by the v1 endpoints."""

from typing import Annotated

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from docsheet.core.database import get_async_session as get_session
from docsheet.services.document_service import DocumentService
from docsheet.services.file_ingestion import FileIngestionService
from docsheet.services.settings_service import SettingsService
from docsheet.services.store import DocumentStore, SqlDocumentStore
from docsheet.services.template_service import TemplateService
from docsheet.services.upload_proxy import EndpointResolver, UploadProxyService
from docsheet.services.workspace import Workspace


async def get_store(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> DocumentStore:
    return SqlDocumentStore(db_session)


async def get_document_service(
    store: Annotated[DocumentStore, Depends(get_store)]
) -> DocumentService:
    return DocumentService(store)


async def get_template_service(
    store: Annotated[DocumentStore, Depends(get_store)]
) -> TemplateService:
    return TemplateService(store)


async def get_settings_service(
    store: Annotated[DocumentStore, Depends(get_store)]
) -> SettingsService:
    return SettingsService(store)


async def get_upload_proxy_service(
    store: Annotated[DocumentStore, Depends(get_store)]
) -> UploadProxyService:
    return UploadProxyService(EndpointResolver(store))


async def get_file_ingestion_service(
    proxy_service: Annotated[UploadProxyService, Depends(get_upload_proxy_service)]
) -> FileIngestionService:
    return FileIngestionService(proxy_service)


async def get_workspace(
    store: Annotated[DocumentStore, Depends(get_store)],
    user_id: str = Query(..., description="User whose workspace is opened"),
) -> Workspace:
    return Workspace(store, user_id)
