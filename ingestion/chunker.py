"""Document chunking functionality."""
from typing import List
from loguru import logger
from core.models import Chunk, make_chunk_id

SENTENCE_ENDINGS = (".", "?", "!")
# A sentence break is only used if it falls past this fraction of the window.
BOUNDARY_THRESHOLD = 0.7


def chunk_text(text: str, size: int = 1000, overlap: int = 200) -> List[str]:
    """
    Split text into overlapping chunks, preferring to end on a sentence.

    Args:
        text: Text to split
        size: Maximum chunk length in characters
        overlap: Characters shared between consecutive chunks; must be < size

    Returns:
        Trimmed, non-empty chunks in document order
    """
    if size <= 0:
        raise ValueError("size must be positive")
    if not 0 <= overlap < size:
        raise ValueError("overlap must be non-negative and smaller than size")

    chunks = []
    start = 0
    length = len(text)

    while start < length:
        end = start + size
        window = text[start:end]

        if end < length:
            boundary = max(window.rfind(mark) for mark in SENTENCE_ENDINGS)
            next_start = start + boundary + 1 - overlap
            if boundary > len(window) * BOUNDARY_THRESHOLD and next_start > start:
                window = window[:boundary + 1]
                start = next_start
            else:
                start = end - overlap
        else:
            start = length

        window = window.strip()
        if window:
            chunks.append(window)

    return chunks


class DocumentChunker:
    """
    Chunks a book's text into fixed-size, overlapping pieces.
    Chunk ids are derived from the book title and position, so
    re-ingesting the same title overwrites earlier records.
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200):
        """
        Initialize document chunker.

        Args:
            chunk_size: Maximum size for chunks (in characters)
            chunk_overlap: Overlap between chunks (in characters)
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError("chunk_overlap must be non-negative and smaller than chunk_size")

        self.logger = logger.bind(name=self.__class__.__name__)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def chunk_document(self, text: str, book_title: str) -> List[Chunk]:
        """
        Chunk a book into Chunk models tagged with the book title.

        Args:
            text: Full document text
            book_title: Title used as partition key and id prefix

        Returns:
            List of chunks with ids, indices and totals
        """
        pieces = chunk_text(text, self.chunk_size, self.chunk_overlap)
        total = len(pieces)

        chunks = [
            Chunk(
                id=make_chunk_id(book_title, idx),
                text=piece,
                index=idx,
                total_chunks=total,
                book_title=book_title,
            )
            for idx, piece in enumerate(pieces)
        ]

        self.logger.info(f"Created {total} chunks from '{book_title}'")
        return chunks
