"""Request and response models for the HTTP API."""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Chat request model; presence of fields is checked by the service."""
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    book_title: Optional[str] = Field(default=None, alias="bookTitle")


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: str
    context_used: bool = Field(alias="contextUsed")


class UploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    book_title: str = Field(alias="bookTitle")
    chunks_processed: int = Field(alias="chunksProcessed")
    message: str = "PDF processed and stored successfully"


class HealthResponse(BaseModel):
    status: str = "OK"
    timestamp: str


class ErrorResponse(BaseModel):
    error: str
