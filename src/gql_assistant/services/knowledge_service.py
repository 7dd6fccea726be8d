"""
Knowledge Service for retrieval and the successful-query archive.

Wraps KnowledgeRepository with the configured collections, top-k and
similarity threshold, and renders hits the way prompts consume them.
"""

from typing import Any, Dict, Optional

from gql_assistant.config import RetrievalConfig, VectorStoreConfig
from gql_assistant.domain.context import KnowledgeResult
from gql_assistant.domain.errors import ConfigurationError
from gql_assistant.repositories.knowledge_repository import KnowledgeRepository
from gql_assistant.utils.logging import get_module_logger
from gql_assistant.utils.tracing import current_trace_id

logger = get_module_logger()


class KnowledgeService:
    """
    Knowledge Retriever over pgvector.

    query() returns NO_CONTEXT_SENTINEL as context when nothing matched;
    callers filter it out before building prompts.
    """

    def __init__(
        self,
        knowledge_repository: KnowledgeRepository,
        retrieval_config: RetrievalConfig,
        vector_store_config: VectorStoreConfig,
    ):
        self.knowledge_repo = knowledge_repository
        self.retrieval = retrieval_config
        self.collections = vector_store_config

        logger.info(
            "KnowledgeService initialized",
            top_k=retrieval_config.top_k,
            min_similarity=retrieval_config.min_similarity_threshold,
            archive_enabled=self.archive_enabled,
            trace_id=current_trace_id(),
        )

    @property
    def archive_enabled(self) -> bool:
        return bool(self.collections.successful_queries_collection)

    async def query(
        self,
        text: str,
        collection: Optional[str] = None,
        k: Optional[int] = None,
    ) -> KnowledgeResult:
        """
        Similarity search in one collection (documentation by default).

        Raises:
            VectorStoreError: If embedding or the search fails
        """
        target = collection or self.collections.docs_collection
        snippets = await self.knowledge_repo.search(
            query=text,
            collection=target,
            k=k or self.retrieval.top_k,
            min_similarity=self.retrieval.min_similarity_threshold,
        )
        return KnowledgeResult.from_snippets(snippets)

    async def archive(
        self,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
        collection: Optional[str] = None,
    ) -> str:
        """
        Append a document to the archive collection.

        Raises:
            ConfigurationError: If no collection is given and archiving is disabled
            VectorStoreError: If the write fails
        """
        target = collection or self.collections.successful_queries_collection
        if not target:
            raise ConfigurationError("Successful query archive is not configured")

        doc_id = await self.knowledge_repo.add(text=text, collection=target, metadata=metadata)
        logger.info("Document archived", collection=target, doc_id=doc_id, trace_id=current_trace_id())
        return doc_id
