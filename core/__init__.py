"""Shared domain models and errors."""
from .errors import BookChatError, InputError, ExtractionFailed, UpstreamError
from .models import Chunk, EmbeddingRecord, RetrievedChunk, Answer, IngestionResult

__all__ = [
    "BookChatError",
    "InputError",
    "ExtractionFailed",
    "UpstreamError",
    "Chunk",
    "EmbeddingRecord",
    "RetrievedChunk",
    "Answer",
    "IngestionResult",
]
