import contextlib
import io
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_document_service, get_query_service
from api.main import COPY_CHUNK_SIZE, create_app, save_upload
from core.errors import ExtractionFailed, InputError, UpstreamError
from core.models import Answer, IngestionResult
from services.document_service import DocumentService
from services.query_service import QueryService

PDF = ("book.pdf", b"%PDF-1.4 fake content", "application/pdf")


@pytest.fixture
def document_service():
    mock = MagicMock(spec=DocumentService)
    mock.ingest_document.return_value = IngestionResult(
        book_title="My Book", chunk_count=4, strategy="structured"
    )
    return mock


@pytest.fixture
def query_service_mock():
    mock = MagicMock(spec=QueryService)
    mock.answer.return_value = Answer(text="An answer.", context_used=True, sources=["My Book-chunk-0"])
    return mock


@pytest.fixture
def make_client(document_service, query_service_mock):
    clients = []

    def _make(settings, raise_server_exceptions=True):
        app = create_app(settings)
        app.dependency_overrides[get_document_service] = lambda: document_service
        app.dependency_overrides[get_query_service] = lambda: query_service_mock

        # Skip real service construction
        @contextlib.asynccontextmanager
        async def mock_lifespan(app):
            yield

        app.router.lifespan_context = mock_lifespan
        client = TestClient(app, raise_server_exceptions=raise_server_exceptions)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client, settings):
    return make_client(settings)


@pytest.mark.parametrize("path", ["/health", "/api/health"])
def test_health(client, path):
    response = client.get(path)
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["timestamp"]


def test_upload_success(client, document_service, settings):
    response = client.post("/upload", files={"pdf": PDF}, data={"bookTitle": "My Book"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "bookTitle": "My Book",
        "chunksProcessed": 4,
        "message": "PDF processed and stored successfully",
    }
    document_service.ingest_document.assert_called_once_with(b"%PDF-1.4 fake content", "My Book", "book.pdf")
    assert list(Path(settings.upload_dir).iterdir()) == []


def test_upload_under_api_prefix(client):
    response = client.post("/api/upload", files={"pdf": PDF})
    assert response.status_code == 200


def test_upload_defaults_title_to_filename(client, document_service):
    client.post("/upload", files={"pdf": ("Deep Work.PDF", b"%PDF-1.4", "application/pdf")})
    assert document_service.ingest_document.call_args.args[1] == "Deep Work"


def test_upload_rejects_non_pdf(client, document_service):
    response = client.post("/upload", files={"pdf": ("notes.txt", b"hello", "text/plain")})

    assert response.status_code == 400
    assert response.json() == {"error": "Only PDF files are allowed"}
    document_service.ingest_document.assert_not_called()


def test_upload_requires_file(client):
    response = client.post("/upload", data={"bookTitle": "My Book"})

    assert response.status_code == 400
    assert response.json() == {"error": "No PDF file uploaded"}


def test_upload_rejects_large_file(make_client, settings, document_service):
    settings.max_upload_mb = 0
    client = make_client(settings)

    response = client.post("/upload", files={"pdf": PDF})

    assert response.status_code == 400
    assert response.json() == {"error": "File too large. Maximum size is 0MB."}
    document_service.ingest_document.assert_not_called()
    assert list(Path(settings.upload_dir).iterdir()) == []


def test_upload_extraction_failure_is_400(client, document_service, settings):
    document_service.ingest_document.side_effect = ExtractionFailed(
        "No meaningful text could be extracted from the PDF"
    )

    response = client.post("/upload", files={"pdf": PDF})

    assert response.status_code == 400
    assert response.json() == {"error": "No meaningful text could be extracted from the PDF"}
    assert list(Path(settings.upload_dir).iterdir()) == []


def test_upstream_error_is_detailed_in_development(client, document_service):
    document_service.ingest_document.side_effect = UpstreamError("Embedding request failed: 401", service="embedding")

    response = client.post("/upload", files={"pdf": PDF})

    assert response.status_code == 500
    assert response.json() == {"error": "Embedding request failed: 401"}


def test_upstream_error_is_generic_in_production(make_client, settings, query_service_mock):
    settings.environment = "production"
    client = make_client(settings)
    query_service_mock.answer.side_effect = UpstreamError("Chat completion failed: key sk-123 invalid", service="chat")

    response = client.post("/chat", json={"message": "Hi", "bookTitle": "My Book"})

    assert response.status_code == 500
    assert response.json() == {"error": "Error processing request"}


def test_chat_success(client, query_service_mock):
    response = client.post("/chat", json={"message": "What is this about?", "bookTitle": "My Book"})

    assert response.status_code == 200
    assert response.json() == {"response": "An answer.", "contextUsed": True}
    query_service_mock.answer.assert_called_once_with("What is this about?", "My Book")


@pytest.mark.parametrize("body", [{}, {"message": "Hi"}, {"bookTitle": "My Book"}, {"message": "", "bookTitle": "X"}])
def test_chat_requires_message_and_title(make_client, settings, body):
    client = make_client(settings)
    client.app.dependency_overrides[get_query_service] = lambda: QueryService(MagicMock())

    response = client.post("/chat", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": "Message and book title are required"}


def test_chat_rejects_malformed_body(client):
    response = client.post("/chat", content=b"not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert "error" in response.json()


def test_unexpected_error_is_500(make_client, settings, query_service_mock):
    settings.environment = "production"
    client = make_client(settings, raise_server_exceptions=False)
    query_service_mock.answer.side_effect = KeyError("boom")

    response = client.post("/chat", json={"message": "Hi", "bookTitle": "My Book"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_unknown_route_is_404(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


def test_rate_limit(make_client, settings):
    settings.rate_limit_max_requests_development = 2
    client = make_client(settings)
    body = {"message": "Hi", "bookTitle": "My Book"}

    assert client.post("/chat", json=body).status_code == 200
    assert client.post("/chat", json=body).status_code == 200
    limited = client.post("/chat", json=body)

    assert limited.status_code == 429
    assert limited.json() == {"error": "Too many requests from this IP, please try again later."}
    assert limited.headers["RateLimit-Remaining"] == "0"
    # Health checks are never limited
    assert client.get("/health").status_code == 200


def test_lifespan_builds_services(settings):
    app = create_app(settings)
    with TestClient(app) as client:
        assert isinstance(client.app.state.document_service, DocumentService)
        assert isinstance(client.app.state.query_service, QueryService)
        assert Path(settings.upload_dir).is_dir()


def test_save_upload_stops_at_limit(tmp_path):
    limit = 1024 * 1024
    source = io.BytesIO(b"x" * (COPY_CHUNK_SIZE * 5))
    destination = tmp_path / "big.pdf"

    with pytest.raises(InputError) as exc_info:
        save_upload(source, destination, limit)

    assert exc_info.value.message == "File too large. Maximum size is 1MB."
    assert source.tell() < len(source.getvalue())
    assert destination.stat().st_size <= limit


def test_save_upload_writes_file(tmp_path):
    destination = tmp_path / "book.pdf"

    written = save_upload(io.BytesIO(b"%PDF-1.4 body"), destination, 1024)

    assert written == 13
    assert destination.read_bytes() == b"%PDF-1.4 body"


def test_error_body_is_documented(client):
    schema = client.get("/openapi.json").json()

    for path in ("/upload", "/chat"):
        responses = schema["paths"][path]["post"]["responses"]
        for status in ("400", "429", "500"):
            ref = responses[status]["content"]["application/json"]["schema"]["$ref"]
            assert ref == "#/components/schemas/ErrorResponse"
    assert schema["components"]["schemas"]["ErrorResponse"]["required"] == ["error"]
