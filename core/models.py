"""Domain models for chunks, vector records and answers."""
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, Field

MetadataValue = Union[str, int, float, bool]


def make_chunk_id(book_title: str, index: int) -> str:
    """Deterministic chunk id; re-ingesting a title overwrites by id."""
    return f"{book_title}-chunk-{index}"


class Chunk(BaseModel):
    """A contiguous slice of a book's extracted text."""

    id: str
    text: str
    index: int
    total_chunks: int
    book_title: str

    def to_metadata(self) -> Dict[str, MetadataValue]:
        """Metadata stored alongside the chunk's vector."""
        return {
            "text": self.text,
            "bookTitle": self.book_title,
            "chunkIndex": self.index,
            "totalChunks": self.total_chunks,
        }


class EmbeddingRecord(BaseModel):
    """A vector plus the metadata needed to rebuild the chunk at query time."""

    id: str
    vector: List[float]
    metadata: Dict[str, MetadataValue]

    @classmethod
    def from_chunk(cls, chunk: Chunk, vector: List[float]) -> "EmbeddingRecord":
        return cls(id=chunk.id, vector=vector, metadata=chunk.to_metadata())


class RetrievedChunk(BaseModel):
    """A nearest-neighbour match; score is cosine similarity."""

    id: str
    text: str
    score: float
    chunk_index: Optional[int] = None
    book_title: Optional[str] = None


class Answer(BaseModel):
    text: str
    context_used: bool
    sources: List[str] = Field(default_factory=list)


class IngestionResult(BaseModel):
    book_title: str
    chunk_count: int
    strategy: str
    degraded: bool = False
