"""Service layer for coordinating components."""
from .document_service import DocumentService
from .query_service import QueryService

__all__ = ["DocumentService", "QueryService"]
