"""Retrieval module: embeddings, vector storage and answer synthesis."""
from .embeddings import EmbeddingClient
from .vector_store import VectorStore
from .query_engine import QueryEngine

__all__ = ["EmbeddingClient", "VectorStore", "QueryEngine"]
