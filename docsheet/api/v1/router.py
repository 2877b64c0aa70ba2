from fastapi import APIRouter

from docsheet.api.v1.endpoints import documents, ingestion, settings, templates, upload_proxy

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(documents.router, prefix="/documents", tags=["Documents"])
api_router.include_router(ingestion.router, prefix="/documents", tags=["File Ingestion"])
api_router.include_router(templates.router, prefix="/templates", tags=["Templates"])
api_router.include_router(settings.router, prefix="/settings", tags=["Settings"])
api_router.include_router(upload_proxy.router, prefix="/upload-proxy", tags=["Upload Proxy"])

__all__ = ["api_router"]
