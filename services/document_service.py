"""Service for document ingestion and processing."""
from typing import Optional
from loguru import logger
from core.errors import ExtractionFailed, InputError
from core.models import EmbeddingRecord, IngestionResult
from ingestion.pdf_parser import PDFParser, is_meaningful
from ingestion.chunker import DocumentChunker
from retrieval.embeddings import EmbeddingClient
from retrieval.vector_store import VectorStore


class DocumentService:
    """
    Coordinates document ingestion: PDF extraction -> validation -> chunking -> embedding -> vector indexing.
    """

    def __init__(
        self,
        pdf_parser: PDFParser,
        chunker: DocumentChunker,
        embedding_client: EmbeddingClient,
        vector_store: VectorStore,
    ):
        """
        Initialize document service.

        Args:
            pdf_parser: Text extractor
            chunker: Document chunker
            embedding_client: Client used to embed each chunk
            vector_store: Vector store instance
        """
        self.logger = logger.bind(name=self.__class__.__name__)
        self.pdf_parser = pdf_parser
        self.chunker = chunker
        self.embedding_client = embedding_client
        self.vector_store = vector_store

    def ingest_document(
        self,
        pdf_bytes: bytes,
        book_title: str,
        filename: Optional[str] = None,
    ) -> IngestionResult:
        """
        Ingest a PDF: extract, validate, chunk, embed, and store in the vector DB.

        Nothing is written unless every chunk was embedded.

        Args:
            pdf_bytes: Raw PDF contents
            book_title: Title used to tag and identify the chunks
            filename: Original filename, used by the fallback content strategy

        Returns:
            IngestionResult with the number of chunks stored
        """
        book_title = (book_title or "").strip()
        if not book_title:
            raise InputError("Book title is required")
        if not pdf_bytes:
            raise InputError("No PDF file uploaded")

        self.logger.info(f"Starting ingestion of '{book_title}'")

        # Step 1: Make sure the index exists before any work
        self.vector_store.ensure_index()

        # Step 2: Extract and validate text
        extraction = self.pdf_parser.extract(pdf_bytes, filename)
        if not is_meaningful(extraction.text):
            self.logger.warning(
                f"Text from strategy '{extraction.strategy}' is not meaningful, trying fallback content"
            )
            extraction = self.pdf_parser.extract_fallback(filename)
            if extraction is None:
                raise ExtractionFailed("No meaningful text could be extracted from the PDF")

        self.logger.info(f"Extracted {len(extraction.text)} characters via '{extraction.strategy}'")

        # Step 3: Chunk
        chunks = self.chunker.chunk_document(extraction.text, book_title)
        if not chunks:
            raise InputError("No text chunks could be created")

        # Step 4: Embed each chunk sequentially
        records = []
        for chunk in chunks:
            self.logger.debug(f"Embedding chunk {chunk.index + 1}/{chunk.total_chunks}")
            vector = self.embedding_client.embed(chunk.text)
            records.append(EmbeddingRecord.from_chunk(chunk, vector))

        # Step 5: Single batch upsert
        self.vector_store.upsert(records)

        self.logger.info(f"Successfully ingested '{book_title}' ({len(records)} chunks)")
        return IngestionResult(
            book_title=book_title,
            chunk_count=len(records),
            strategy=extraction.strategy,
            degraded=extraction.degraded,
        )
