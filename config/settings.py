"""Application settings and configuration."""
from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI Configuration
    openai_api_key: str
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536
    chat_model: str = "gpt-4o-mini"
    chat_max_tokens: int = 500
    chat_temperature: float = 0.7

    # Vector store (Chroma) Configuration
    chroma_api_key: Optional[str] = None
    chroma_tenant: Optional[str] = None
    chroma_database: Optional[str] = None
    chroma_host: Optional[str] = None
    chroma_port: int = 8000
    chroma_persist_dir: str = "./chroma_db"
    vector_index_name: str = "bookgpt-index"

    # Pipeline Configuration
    chunk_size: int = 1000
    chunk_overlap: int = 200
    retrieval_top_k: int = 5
    min_relevance_score: float = 0.2
    request_timeout: float = 60.0
    upstream_max_attempts: int = 3

    # Application Configuration
    environment: str = "development"
    frontend_url: str = "http://localhost:3000"
    rate_limit_window_seconds: int = 15 * 60
    rate_limit_max_requests_production: int = 100
    rate_limit_max_requests_development: int = 1000
    max_upload_mb: int = 50
    upload_dir: str = "uploads"
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 3001

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    @model_validator(mode="after")
    def _check_chunking(self) -> "Settings":
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be non-negative and smaller than chunk_size")
        if self.upstream_max_attempts < 1:
            raise ValueError("upstream_max_attempts must be at least 1")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def rate_limit_max_requests(self) -> int:
        if self.is_production:
            return self.rate_limit_max_requests_production
        return self.rate_limit_max_requests_development

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


# Global settings instance
settings = Settings()
