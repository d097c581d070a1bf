"""Service for processing questions."""
from loguru import logger
from core.errors import InputError
from core.models import Answer
from retrieval.query_engine import QueryEngine


class QueryService:
    """Service for answering user questions about a book."""

    def __init__(self, query_engine: QueryEngine):
        """
        Initialize query service.

        Args:
            query_engine: Query engine instance
        """
        self.logger = logger.bind(name=self.__class__.__name__)
        self.query_engine = query_engine

    def answer(self, question: str, book_title: str) -> Answer:
        """
        Answer a question about a book.

        Args:
            question: User question
            book_title: Title the question refers to

        Returns:
            Answer with generated text and whether relevant context was found
        """
        question = (question or "").strip()
        book_title = (book_title or "").strip()
        if not question or not book_title:
            raise InputError("Message and book title are required")

        answer = self.query_engine.query(question, book_title)
        self.logger.info(f"Answered question for '{book_title}' (context used: {answer.context_used})")
        return answer
