import os
import uuid
import zlib
from unittest.mock import MagicMock

os.environ.setdefault("OPENAI_API_KEY", "test-key")

import chromadb
import httpx
import pytest
from chromadb.config import Settings as ChromaSettings
from llama_index.core.llms import ChatMessage, ChatResponse, MessageRole

from config.settings import Settings
from ingestion.chunker import DocumentChunker
from ingestion.pdf_parser import ExtractionStrategy, PDFParser
from retrieval.embeddings import EmbeddingClient
from retrieval.query_engine import QueryEngine
from retrieval.vector_store import VectorStore
from services.document_service import DocumentService
from services.query_service import QueryService

DIMENSION = 1536


def fake_vector(text: str):
    """Deterministic, mostly-aligned vector so every pair is highly similar."""
    vector = [1.0] * DIMENSION
    vector[zlib.crc32(text.encode("utf-8")) % DIMENSION] += 5.0
    return vector


def openai_error(error_class, status_code):
    """Build an OpenAI SDK status error without a network call."""
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    return error_class("error", response=httpx.Response(status_code, request=request), body=None)


class StaticTextStrategy(ExtractionStrategy):
    """Extraction strategy returning fixed text, for pipeline tests."""

    name = "static"

    def __init__(self, text):
        super().__init__()
        self.text = text

    def extract(self, pdf_bytes, filename=None):
        return self.text


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        openai_api_key="test-key",
        vector_index_name=f"test-{uuid.uuid4().hex[:12]}",
        upstream_max_attempts=1,
        min_relevance_score=0.2,
        upload_dir=str(tmp_path / "uploads"),
        chroma_persist_dir=str(tmp_path / "chroma"),
    )


@pytest.fixture
def embed_model():
    model = MagicMock()
    model.get_text_embedding.side_effect = fake_vector
    return model


@pytest.fixture
def embedding_client(settings, embed_model):
    return EmbeddingClient(settings, embed_model=embed_model)


@pytest.fixture(scope="session")
def chroma_client():
    return chromadb.EphemeralClient(settings=ChromaSettings(anonymized_telemetry=False))


@pytest.fixture
def vector_store(settings, chroma_client):
    return VectorStore(settings, client=chroma_client)


@pytest.fixture
def llm():
    mock = MagicMock()
    mock.chat.return_value = ChatResponse(
        message=ChatMessage(role=MessageRole.ASSISTANT, content="This book is about testing pipelines.")
    )
    return mock


@pytest.fixture
def query_engine(settings, embedding_client, vector_store, llm):
    return QueryEngine(settings, embedding_client, vector_store, llm=llm)


@pytest.fixture
def query_service(query_engine):
    return QueryService(query_engine)


@pytest.fixture
def make_document_service(settings, embedding_client, vector_store):
    def _make(text):
        return DocumentService(
            pdf_parser=PDFParser([StaticTextStrategy(text)]),
            chunker=DocumentChunker(settings.chunk_size, settings.chunk_overlap),
            embedding_client=embedding_client,
            vector_store=vector_store,
        )
    return _make
