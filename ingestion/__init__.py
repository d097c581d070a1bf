"""PDF extraction and chunking module."""
from .pdf_parser import PDFParser, ExtractionResult, is_meaningful, strip_pdf_noise
from .chunker import DocumentChunker, chunk_text

__all__ = [
    "PDFParser",
    "ExtractionResult",
    "is_meaningful",
    "strip_pdf_noise",
    "DocumentChunker",
    "chunk_text",
]
