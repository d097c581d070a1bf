import pytest
from pydantic import ValidationError

from config.settings import Settings


def _settings(**overrides):
    return Settings(_env_file=None, openai_api_key="test-key", **overrides)


def test_defaults():
    settings = _settings()

    assert settings.chunk_size == 1000
    assert settings.chunk_overlap == 200
    assert settings.embedding_dimension == 1536
    assert settings.retrieval_top_k == 5
    assert settings.vector_index_name == "bookgpt-index"
    assert not settings.is_production
    assert settings.rate_limit_max_requests == 1000
    assert settings.max_upload_bytes == 50 * 1024 * 1024


def test_production_mode_tightens_rate_limit():
    settings = _settings(environment="Production")

    assert settings.is_production
    assert settings.rate_limit_max_requests == 100


@pytest.mark.parametrize("size,overlap", [(1000, 1000), (1000, 1200), (0, 0), (100, -5)])
def test_rejects_overlap_not_smaller_than_size(size, overlap):
    with pytest.raises(ValidationError):
        _settings(chunk_size=size, chunk_overlap=overlap)


def test_rejects_zero_attempts():
    with pytest.raises(ValidationError):
        _settings(upstream_max_attempts=0)
