"""FastAPI application."""
import asyncio
import re
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional
from fastapi import APIRouter, Depends, FastAPI, File, Form, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from config.settings import Settings, settings as default_settings  # This will trigger logger setup via config.__init__
from config.logger import install_asyncio_crash_handler
from core.errors import InputError, UpstreamError
from ingestion.chunker import DocumentChunker
from ingestion.pdf_parser import PDFParser
from retrieval.embeddings import EmbeddingClient
from retrieval.query_engine import QueryEngine
from retrieval.vector_store import VectorStore
from services.document_service import DocumentService
from services.query_service import QueryService
from .dependencies import get_document_service, get_query_service, get_settings
from .errors import register_exception_handlers
from .middleware import FixedWindowRateLimiter, add_middleware
from .models import ChatRequest, ChatResponse, ErrorResponse, HealthResponse, UploadResponse

router = APIRouter()

COPY_CHUNK_SIZE = 1024 * 1024
ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def build_services(settings: Settings):
    """Wire pipeline components from settings."""
    embedding_client = EmbeddingClient(settings)
    vector_store = VectorStore(settings)
    document_service = DocumentService(
        pdf_parser=PDFParser(),
        chunker=DocumentChunker(settings.chunk_size, settings.chunk_overlap),
        embedding_client=embedding_client,
        vector_store=vector_store,
    )
    query_engine = QueryEngine(settings, embedding_client, vector_store)
    return vector_store, document_service, QueryService(query_engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on startup."""
    settings = app.state.settings
    logger.info("Initializing services...")
    install_asyncio_crash_handler(asyncio.get_running_loop())
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)

    vector_store, document_service, query_service = build_services(settings)
    try:
        vector_store.ensure_index()
    except UpstreamError as e:
        # Ingestion retries this before its first write.
        logger.warning(f"Vector index not ready at startup: {e.message}")

    app.state.document_service = document_service
    app.state.query_service = query_service
    logger.info(f"Services initialized ({settings.environment} mode)")
    yield
    logger.info("Services shut down")


def _sanitize_filename(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", filename)


def _default_title(filename: str) -> str:
    return re.sub(r"\.pdf$", "", filename, flags=re.IGNORECASE)


def save_upload(source: BinaryIO, destination: Path, max_bytes: int) -> int:
    """
    Copy an uploaded file to disk in bounded reads.

    Args:
        source: Readable upload stream
        destination: Target path
        max_bytes: Largest accepted size

    Returns:
        Number of bytes written

    Raises:
        InputError: As soon as more than `max_bytes` have been read
    """
    written = 0
    with open(destination, "wb") as buffer:
        while True:
            data = source.read(COPY_CHUNK_SIZE)
            if not data:
                break
            written += len(data)
            if written > max_bytes:
                raise InputError(f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB.")
            buffer.write(data)
    return written


@router.post("/upload", response_model=UploadResponse, responses=ERROR_RESPONSES)
def upload_pdf(
    pdf: Optional[UploadFile] = File(None),
    book_title: Optional[str] = Form(None, alias="bookTitle"),
    settings: Settings = Depends(get_settings),
    document_service: DocumentService = Depends(get_document_service),
):
    """
    Upload and ingest a PDF book.

    Args:
        pdf: The PDF file
        book_title: Optional title; defaults to the filename without extension

    Returns:
        Upload result with the number of chunks stored
    """
    if pdf is None or not pdf.filename:
        raise InputError("No PDF file uploaded")

    filename = pdf.filename
    if pdf.content_type != "application/pdf" and not filename.lower().endswith(".pdf"):
        raise InputError("Only PDF files are allowed")

    title = (book_title or "").strip() or _default_title(filename)

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    file_path = upload_dir / f"{int(time.time() * 1000)}-{_sanitize_filename(filename)}"

    # Declared size, when the client sent one
    if pdf.size is not None and pdf.size > settings.max_upload_bytes:
        raise InputError(f"File too large. Maximum size is {settings.max_upload_mb}MB.")

    try:
        save_upload(pdf.file, file_path, settings.max_upload_bytes)
        result = document_service.ingest_document(file_path.read_bytes(), title, filename)
    finally:
        file_path.unlink(missing_ok=True)

    logger.info(f"Successfully uploaded and ingested: {filename} as '{result.book_title}'")
    return UploadResponse(book_title=result.book_title, chunks_processed=result.chunk_count)


@router.post("/chat", response_model=ChatResponse, responses=ERROR_RESPONSES)
def chat(
    request: ChatRequest,
    query_service: QueryService = Depends(get_query_service),
):
    """
    Answer a question about an uploaded book.

    Args:
        request: Message and book title

    Returns:
        Generated response and whether book context was used
    """
    answer = query_service.answer(request.message, request.book_title)
    return ChatResponse(response=answer.text, context_used=answer.context_used)


@router.get("/health", response_model=HealthResponse)
def health_check():
    """Health check endpoint."""
    return HealthResponse(timestamp=datetime.now(timezone.utc).isoformat())


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings; the environment-loaded settings by default
    """
    settings = settings or default_settings

    app = FastAPI(
        title="BookChat API",
        description="API for PDF book ingestion and book-grounded chat",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    register_exception_handlers(app)

    limiter = FixedWindowRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    add_middleware(app, limiter)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url] if settings.is_production else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    # The web client calls the same endpoints under /api.
    app.include_router(router, prefix="/api", include_in_schema=False)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=default_settings.api_host,
        port=default_settings.api_port,
        reload=not default_settings.is_production,
    )
