"""Query engine that answers questions about a book using retrieved context."""
from typing import List, Optional
from llama_index.core import PromptTemplate
from llama_index.core.llms import LLM, ChatMessage, MessageRole
from llama_index.llms.openai import OpenAI
from loguru import logger
from config.settings import Settings
from core.errors import UpstreamError
from core.models import Answer, RetrievedChunk
from .embeddings import EmbeddingClient
from .retry import OPENAI_PERMANENT_ERRORS, upstream_retrying
from .vector_store import VectorStore


class QueryEngine:
    """
    Answers a question about one book.
    Retrieves the nearest chunks, drops those below the relevance cutoff,
    and grounds a single chat completion in the rest.
    """

    SYSTEM_PROMPT = """You are a helpful assistant for the book "{book_title}".
Use the following context from the book to answer the user's question.
If the context is empty or doesn't contain relevant information, you can provide general advice but mention that it's not specific to this book.

Book Context:
{context}

Answer the user's question based on this context."""

    def __init__(
        self,
        settings: Settings,
        embedding_client: EmbeddingClient,
        vector_store: VectorStore,
        llm: Optional[LLM] = None,
    ):
        """
        Initialize query engine.

        Args:
            settings: Application settings
            embedding_client: Client used to embed the question
            vector_store: Store holding the book's chunks
            llm: Chat model override, mainly for tests
        """
        self.logger = logger.bind(name=self.__class__.__name__)
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.top_k = settings.retrieval_top_k
        self.min_score = settings.min_relevance_score
        self.max_attempts = settings.upstream_max_attempts
        self.prompt = PromptTemplate(self.SYSTEM_PROMPT)

        self.llm = llm or OpenAI(
            api_key=settings.openai_api_key,
            model=settings.chat_model,
            temperature=settings.chat_temperature,
            max_tokens=settings.chat_max_tokens,
            timeout=settings.request_timeout,
            max_retries=0,
        )

    def retrieve(self, question: str, book_title: str) -> List[RetrievedChunk]:
        """Nearest chunks for the question that clear the relevance cutoff."""
        vector = self.embedding_client.embed(question)
        matches = self.vector_store.query(vector, book_title, top_k=self.top_k)
        relevant = [m for m in matches if m.score >= self.min_score]
        if len(relevant) < len(matches):
            self.logger.info(
                f"Dropped {len(matches) - len(relevant)} matches below relevance {self.min_score}"
            )
        return relevant

    @staticmethod
    def format_context(chunks: List[RetrievedChunk]) -> str:
        """Join chunk texts in rank order, separated by blank lines."""
        return "\n\n".join(chunk.text for chunk in chunks if chunk.text)

    def build_messages(self, question: str, book_title: str, context: str) -> List[ChatMessage]:
        system_prompt = self.prompt.format(book_title=book_title, context=context)
        return [
            ChatMessage(role=MessageRole.SYSTEM, content=system_prompt),
            ChatMessage(role=MessageRole.USER, content=question),
        ]

    def query(self, question: str, book_title: str) -> Answer:
        """
        Answer a question using the book's most relevant chunks.

        Args:
            question: User question
            book_title: Book whose chunks may be used as context

        Returns:
            Answer with the generated text and whether context was used
        """
        self.logger.info(f"Processing question for '{book_title}': {question[:100]}")

        chunks = self.retrieve(question, book_title)
        context = self.format_context(chunks)
        messages = self.build_messages(question, book_title, context)

        self.logger.info(f"Generating answer with {len(chunks)} context chunks ({len(context)} chars)")
        try:
            for attempt in upstream_retrying(self.max_attempts, OPENAI_PERMANENT_ERRORS):
                with attempt:
                    response = self.llm.chat(messages)
        except Exception as e:
            self.logger.error(f"Chat completion failed: {e}")
            raise UpstreamError(f"Chat completion failed: {e}", service="chat") from e

        text = (response.message.content or "").strip()
        return Answer(
            text=text,
            context_used=len(context) > 0,
            sources=[chunk.id for chunk in chunks],
        )
