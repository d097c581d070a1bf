"""Retry policy for upstream calls (OpenAI and Chroma)."""
from typing import Tuple, Type
import openai
from chromadb.errors import AuthorizationError
from tenacity import Retrying, retry_if_not_exception_type, stop_after_attempt, wait_exponential

# Failures a second attempt cannot fix: bad credentials, bad requests.
OPENAI_PERMANENT_ERRORS: Tuple[Type[BaseException], ...] = (
    openai.AuthenticationError,
    openai.PermissionDeniedError,
    openai.BadRequestError,
    openai.NotFoundError,
    openai.UnprocessableEntityError,
)
CHROMA_PERMANENT_ERRORS: Tuple[Type[BaseException], ...] = (
    AuthorizationError,
    ValueError,
    TypeError,
)


def upstream_retrying(max_attempts: int, permanent_errors: Tuple[Type[BaseException], ...] = ()) -> Retrying:
    """
    Build a tenacity retry loop with exponential backoff.

    Args:
        max_attempts: Total number of tries, including the first
        permanent_errors: Exception types raised immediately without retrying

    Returns:
        Retrying iterator that re-raises the last error
    """
    return Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_not_exception_type(permanent_errors),
        reraise=True,
    )
