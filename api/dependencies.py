"""FastAPI dependency providers backed by application state."""
from fastapi import HTTPException, Request
from config.settings import Settings
from services.document_service import DocumentService
from services.query_service import QueryService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_document_service(request: Request) -> DocumentService:
    service = getattr(request.app.state, "document_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Document service not initialized")
    return service


def get_query_service(request: Request) -> QueryService:
    service = getattr(request.app.state, "query_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Query service not initialized")
    return service
