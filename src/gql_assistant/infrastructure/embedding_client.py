"""
Embedding client for OpenRouter using LangChain.

Knowledge lookups embed the facet text as a query; archive writes embed
the query/result pair as a document. Both must use the model the
collections were built with, so the vector dimension is checked on every
call.
"""

from typing import Any, Dict, List, Optional

from langchain_openai import OpenAIEmbeddings
from pydantic import SecretStr

from ..config import EmbeddingConfig
from ..domain.errors import EmbeddingError
from ..utils.logging import get_module_logger
from ..utils.text_utils import InputValidator
from ..utils.tracing import current_trace_id


logger = get_module_logger()


class EmbeddingClient:
    """
    OpenAIEmbeddings pointed at OpenRouter.

    Usage:
        client = EmbeddingClient(config)
        await client.connect()
        vector = await client.embed_query("Events with @param or @notice similar to: round metadata")
        await client.close()
    """

    def __init__(self, config: EmbeddingConfig):
        self.config = config
        self._embeddings: Optional[OpenAIEmbeddings] = None

        logger.info(
            "EmbeddingClient initialized",
            embedding_model=config.embedding_model,
            embedding_dimension=config.embedding_dimension,
        )

    async def connect(self) -> None:
        """
        Build the LangChain embeddings object. No request is sent.

        Raises:
            EmbeddingError: If the client cannot be constructed
        """
        if self._embeddings is not None:
            logger.warning("Embedding client already connected")
            return

        try:
            self._embeddings = OpenAIEmbeddings(
                model=self.config.embedding_model,
                api_key=SecretStr(self.config.openrouter_api_key),
                base_url=self.config.base_url,
                dimensions=self.config.embedding_dimension,
                timeout=self.config.timeout_seconds,
                max_retries=self.config.max_retries,
            )
        except Exception as e:
            error_msg = f"Failed to initialize embedding client: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=current_trace_id())
            raise EmbeddingError(error_msg) from e

        logger.info("Embedding client ready", trace_id=current_trace_id())

    async def close(self) -> None:
        self._embeddings = None
        logger.info("Embedding client closed", trace_id=current_trace_id())

    def is_connected(self) -> bool:
        return self._embeddings is not None

    async def health_check(self) -> Dict[str, Any]:
        """Report readiness without spending an API call."""
        if not self.is_connected():
            return {"status": "unhealthy", "connected": False, "error": "Embedding client not connected"}
        return {
            "status": "healthy",
            "connected": True,
            "embedding_model": self.config.embedding_model,
        }

    async def embed_query(self, text: str) -> List[float]:
        """
        Embed a search text (a knowledge facet or a raw search).

        Raises:
            EmbeddingError: On API failure, oversized text or a dimension mismatch
        """
        embeddings = self._ready(text)
        try:
            vector = await embeddings.aembed_query(text)
        except Exception as e:
            raise self._failure("query", text, e) from e
        return self._checked(vector)

    async def embed_document(self, text: str) -> List[float]:
        """
        Embed a text that will be stored (an archive entry).

        Raises:
            EmbeddingError: On API failure, oversized text or a dimension mismatch
        """
        embeddings = self._ready(text)
        try:
            vectors = await embeddings.aembed_documents([text])
        except Exception as e:
            raise self._failure("document", text, e) from e
        return self._checked(vectors[0] if vectors else [])

    def _ready(self, text: str) -> OpenAIEmbeddings:
        if self._embeddings is None:
            raise EmbeddingError("Embedding client is not connected")
        try:
            InputValidator.validate_char_limit(text, max_chars=self.config.max_input_chars)
        except ValueError as e:
            raise EmbeddingError(str(e)) from e
        logger.debug("Embedding text", text_length=len(text), trace_id=current_trace_id())
        return self._embeddings

    def _failure(self, kind: str, text: str, error: Exception) -> EmbeddingError:
        error_msg = f"Embedding {kind} failed: {error}"
        logger.error(
            error_msg,
            error_type=type(error).__name__,
            text_length=len(text),
            trace_id=current_trace_id(),
        )
        return EmbeddingError(error_msg)

    def _checked(self, vector: List[float]) -> List[float]:
        expected = self.config.embedding_dimension
        if len(vector) != expected:
            raise EmbeddingError(f"Invalid embedding dimension: expected {expected}, got {len(vector)}")
        return vector
