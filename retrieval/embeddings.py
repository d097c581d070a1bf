"""Embedding client wrapping the OpenAI embedding model."""
from typing import List, Optional
from llama_index.core.base.embeddings.base import BaseEmbedding
from llama_index.embeddings.openai import OpenAIEmbedding
from loguru import logger
from config.settings import Settings
from core.errors import UpstreamError
from .retry import OPENAI_PERMANENT_ERRORS, upstream_retrying


class EmbeddingClient:
    """
    Turns text into fixed-length vectors.
    Calls are retried with exponential backoff; exhausted retries and
    vectors of the wrong dimension surface as UpstreamError.
    """

    def __init__(self, settings: Settings, embed_model: Optional[BaseEmbedding] = None):
        """
        Initialize embedding client.

        Args:
            settings: Application settings
            embed_model: Embedding model override, mainly for tests
        """
        self.logger = logger.bind(name=self.__class__.__name__)
        self.dimension = settings.embedding_dimension
        self.max_attempts = settings.upstream_max_attempts
        self.embed_model = embed_model or OpenAIEmbedding(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            timeout=settings.request_timeout,
            max_retries=0,  # tenacity owns retries
        )

    def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Vector of length `dimension`
        """
        try:
            for attempt in upstream_retrying(self.max_attempts, OPENAI_PERMANENT_ERRORS):
                with attempt:
                    vector = self.embed_model.get_text_embedding(text)
        except Exception as e:
            self.logger.error(f"Error generating embedding: {e}")
            raise UpstreamError(f"Embedding request failed: {e}", service="embedding") from e

        if len(vector) != self.dimension:
            raise UpstreamError(
                f"Embedding has dimension {len(vector)}, expected {self.dimension}",
                service="embedding",
            )
        return list(vector)
