"""Vector store for embedding-based retrieval."""
from typing import Callable, List, Optional, TypeVar
import os
import chromadb
from chromadb.api import ClientAPI
from chromadb.config import Settings as ChromaSettings
from loguru import logger
from config.settings import Settings
from core.errors import UpstreamError
from core.models import EmbeddingRecord, RetrievedChunk
from .retry import CHROMA_PERMANENT_ERRORS, upstream_retrying

T = TypeVar("T")

DISTANCE_METRIC = "cosine"


def create_chroma_client(settings: Settings) -> ClientAPI:
    """
    Build a Chroma client from settings.

    Chroma Cloud is used when an API key is configured, a remote server when a
    host is configured, and a local persistent store otherwise.
    """
    chroma_settings = ChromaSettings(anonymized_telemetry=False)
    if settings.chroma_api_key:
        return chromadb.CloudClient(
            tenant=settings.chroma_tenant,
            database=settings.chroma_database,
            api_key=settings.chroma_api_key,
        )
    if settings.chroma_host:
        return chromadb.HttpClient(
            host=settings.chroma_host,
            port=settings.chroma_port,
            settings=chroma_settings,
        )
    os.makedirs(settings.chroma_persist_dir, exist_ok=True)
    return chromadb.PersistentClient(path=settings.chroma_persist_dir, settings=chroma_settings)


class VectorStore:
    """
    Manages vector embeddings and similarity search.
    Uses a Chroma collection in cosine space, one record per chunk id.
    """

    def __init__(self, settings: Settings, client: Optional[ClientAPI] = None):
        """
        Initialize vector store.

        Args:
            settings: Application settings
            client: Chroma client override; built from settings when omitted
        """
        self.logger = logger.bind(name=self.__class__.__name__)
        self.index_name = settings.vector_index_name
        self.dimension = settings.embedding_dimension
        self.max_attempts = settings.upstream_max_attempts
        self.client = client or create_chroma_client(settings)
        self._collection = None

    def ensure_index(self):
        """Create the collection if it does not exist yet. Idempotent."""
        if self._collection is not None:
            return self._collection

        collection = self._call(
            "ensure index",
            lambda: self.client.get_or_create_collection(
                name=self.index_name,
                metadata={"hnsw:space": DISTANCE_METRIC, "dimension": self.dimension},
                embedding_function=None,
            ),
        )

        metadata = collection.metadata or {}
        space = metadata.get("hnsw:space", DISTANCE_METRIC)
        if space != DISTANCE_METRIC:
            raise UpstreamError(
                f"Index '{self.index_name}' uses metric '{space}', expected '{DISTANCE_METRIC}'",
                service="vector_store",
            )
        dimension = metadata.get("dimension", self.dimension)
        if dimension != self.dimension:
            raise UpstreamError(
                f"Index '{self.index_name}' has dimension {dimension}, expected {self.dimension}",
                service="vector_store",
            )

        self._collection = collection
        self.logger.info(f"Vector index ready: {self.index_name}")
        return collection

    def upsert(self, records: List[EmbeddingRecord]) -> int:
        """
        Insert or overwrite records by id in a single batch.

        Returns:
            Number of records written
        """
        if not records:
            return 0
        for record in records:
            if len(record.vector) != self.dimension:
                raise UpstreamError(
                    f"Record {record.id} has dimension {len(record.vector)}, expected {self.dimension}",
                    service="vector_store",
                )

        collection = self.ensure_index()
        self._call(
            "upsert",
            lambda: collection.upsert(
                ids=[r.id for r in records],
                embeddings=[r.vector for r in records],
                metadatas=[r.metadata for r in records],
                documents=[str(r.metadata.get("text", "")) for r in records],
            ),
        )
        self.logger.info(f"Upserted {len(records)} records into {self.index_name}")
        return len(records)

    def query(self, vector: List[float], book_title: str, top_k: int = 5) -> List[RetrievedChunk]:
        """
        Nearest-neighbour search restricted to one book.

        Args:
            vector: Query embedding
            book_title: Only records tagged with this title are considered
            top_k: Number of results to return

        Returns:
            Matches ordered by descending cosine similarity
        """
        collection = self.ensure_index()
        result = self._call(
            "query",
            lambda: collection.query(
                query_embeddings=[vector],
                n_results=top_k,
                where={"bookTitle": book_title},
                include=["metadatas", "documents", "distances"],
            ),
        )

        ids = (result.get("ids") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0]
        documents = (result.get("documents") or [[]])[0]
        distances = (result.get("distances") or [[]])[0]

        matches = []
        for idx, chunk_id in enumerate(ids):
            metadata = metadatas[idx] or {}
            text = metadata.get("text") or documents[idx] or ""
            matches.append(RetrievedChunk(
                id=chunk_id,
                text=text,
                score=1.0 - distances[idx],
                chunk_index=metadata.get("chunkIndex"),
                book_title=metadata.get("bookTitle"),
            ))

        self.logger.info(f"Retrieved {len(matches)} results for '{book_title}'")
        return matches

    def count(self, book_title: Optional[str] = None) -> int:
        """Number of stored records, optionally for a single book."""
        collection = self.ensure_index()
        if book_title is None:
            return self._call("count", collection.count)
        result = self._call("count", lambda: collection.get(where={"bookTitle": book_title}, include=["metadatas"]))
        return len(result.get("ids") or [])

    def _call(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            for attempt in upstream_retrying(self.max_attempts, CHROMA_PERMANENT_ERRORS):
                with attempt:
                    return fn()
        except Exception as e:
            self.logger.error(f"Vector store {operation} failed: {e}")
            raise UpstreamError(f"Vector store {operation} failed: {e}", service="vector_store") from e
