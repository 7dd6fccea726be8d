"""
Knowledge repository: pgvector similarity search and append-only writes.

One table holds every collection (documentation, contract source code,
successful queries); rows are separated by a collection column.
Uses the shared DatabaseClient for connection pooling.
"""

import asyncio
import json
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from gql_assistant.config import VectorStoreConfig
from gql_assistant.config_constants import (
    PGVECTOR_DISTANCE_OPERATORS,
    PGVECTOR_OPS_MAP,
    DistanceStrategy,
)
from gql_assistant.domain.context import KnowledgeSnippet
from gql_assistant.domain.errors import VectorStoreError
from gql_assistant.infrastructure.database_client import DatabaseClient
from gql_assistant.infrastructure.embedding_client import EmbeddingClient
from gql_assistant.utils.logging import get_module_logger
from gql_assistant.utils.tracing import current_trace_id

logger = get_module_logger()


def sanitize_for_json(obj: Any) -> Any:
    """
    Recursively convert metadata values to JSON-serializable types.

    datetime/date become ISO strings, Decimal becomes float, UUID and
    anything unknown becomes str.
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, Mapping):
        return {str(key): sanitize_for_json(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [sanitize_for_json(item) for item in obj]
    return str(obj)


def to_pgvector(embedding: List[float]) -> str:
    """pgvector text format: '[0.1,0.2,0.3]'."""
    return f"[{','.join(str(x) for x in embedding)}]"


class KnowledgeRepository:
    """
    Repository for knowledge chunks stored in pgvector.

    Handles setup (extension, table, indexes) and runtime operations
    (search, add).
    """

    def __init__(
        self,
        db_client: DatabaseClient,
        embedding_client: EmbeddingClient,
        config: VectorStoreConfig,
    ):
        self.db = db_client
        self.embeddings = embedding_client
        self.config = config
        self._setup_done = False
        self._setup_lock = asyncio.Lock()

        logger.info(
            "KnowledgeRepository initialized",
            table_name=config.table_name,
            distance_strategy=str(config.distance_strategy),
            trace_id=current_trace_id(),
        )

    async def ensure_setup(self) -> None:
        """
        Create extension, table and indexes if they don't exist (idempotent).

        Raises:
            VectorStoreError: If setup fails
        """
        if self._setup_done:
            return

        # Context gathering searches several facets at once on a cold process
        async with self._setup_lock:
            if self._setup_done:
                return
            await self._create_schema()

    async def _create_schema(self) -> None:
        table = self.config.table_name
        dimension = self.embeddings.config.embedding_dimension
        ops_class = PGVECTOR_OPS_MAP[self.config.distance_strategy]

        statements = [
            "CREATE EXTENSION IF NOT EXISTS vector;",
            f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id UUID PRIMARY KEY,
                collection TEXT NOT NULL,
                content TEXT NOT NULL,
                embedding vector({dimension}) NOT NULL,
                metadata JSONB DEFAULT '{{}}'::jsonb,
                created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
            );
            """,
            f"""
            CREATE INDEX IF NOT EXISTS {table}_hnsw_idx
            ON {table}
            USING hnsw (embedding {ops_class})
            WITH (m = {self.config.hnsw_m}, ef_construction = {self.config.hnsw_ef_construction});
            """,
            f"CREATE INDEX IF NOT EXISTS idx_{table}_collection ON {table}(collection);",
        ]

        try:
            async with self.db.acquire_connection() as conn:
                for statement in statements:
                    await conn.execute(statement)
        except Exception as e:
            logger.error(
                "Failed to setup knowledge store",
                error=str(e),
                trace_id=current_trace_id(),
                exc_info=True,
            )
            raise VectorStoreError(f"Failed to setup knowledge store: {e}") from e

        self._setup_done = True
        logger.info("Knowledge store setup complete", table_name=table)

    async def search(
        self,
        query: str,
        collection: str,
        k: int,
        min_similarity: Optional[float] = None,
    ) -> List[KnowledgeSnippet]:
        """
        Return up to k chunks of a collection ordered by similarity.

        Raises:
            VectorStoreError: If validation or the search fails
        """
        trace_id = current_trace_id()

        if not query or not query.strip():
            raise VectorStoreError("Query cannot be empty")
        if k < 1:
            raise VectorStoreError(f"k must be >= 1, got {k}")
        if min_similarity is not None and not (0.0 <= min_similarity <= 1.0):
            raise VectorStoreError(
                f"min_similarity must be between 0.0 and 1.0, got {min_similarity}"
            )

        await self.ensure_setup()

        logger.info(
            "Searching knowledge",
            collection=collection,
            query_length=len(query),
            k=k,
            min_similarity=min_similarity,
            trace_id=trace_id,
        )

        try:
            query_embedding = await self.embeddings.embed_query(query)
            operator = PGVECTOR_DISTANCE_OPERATORS[self.config.distance_strategy]

            sql = f"""
                SELECT
                    content,
                    metadata,
                    embedding {operator} $1 AS distance
                FROM {self.config.table_name}
                WHERE collection = $2
                ORDER BY distance ASC
                LIMIT $3;
            """
            rows = await self.db.fetch(sql, [to_pgvector(query_embedding), collection, k])

        except VectorStoreError:
            raise
        except Exception as e:
            logger.error(
                "Failed to search knowledge",
                error=str(e),
                collection=collection,
                trace_id=trace_id,
                exc_info=True,
            )
            raise VectorStoreError(f"Failed to search knowledge: {e}") from e

        snippets: List[KnowledgeSnippet] = []
        for row in rows:
            similarity = self._distance_to_similarity(float(row["distance"]))
            if min_similarity is not None and similarity < min_similarity:
                continue
            metadata = row["metadata"]
            if isinstance(metadata, str):
                metadata = json.loads(metadata)
            snippets.append(
                KnowledgeSnippet(text=row["content"], similarity=similarity, metadata=metadata or {})
            )

        logger.info(
            "Knowledge search finished",
            collection=collection,
            result_count=len(snippets),
            trace_id=trace_id,
        )
        return snippets

    async def add(
        self,
        text: str,
        collection: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Embed and insert one document under a fresh UUID.

        Writes never update existing rows, so concurrent writers cannot
        clobber each other.

        Returns:
            The new document ID

        Raises:
            VectorStoreError: If embedding or the insert fails
        """
        trace_id = current_trace_id()

        if not text or not text.strip():
            raise VectorStoreError("Cannot store empty text")

        await self.ensure_setup()

        doc_id = str(uuid.uuid4())
        try:
            embedding = await self.embeddings.embed_document(text)
            await self.db.execute(
                f"""
                INSERT INTO {self.config.table_name} (id, collection, content, embedding, metadata)
                VALUES ($1, $2, $3, $4, $5);
                """,
                [
                    uuid.UUID(doc_id),
                    collection,
                    text,
                    to_pgvector(embedding),
                    json.dumps(sanitize_for_json(metadata or {})),
                ],
            )
        except Exception as e:
            logger.error(
                "Failed to add knowledge document",
                error=str(e),
                collection=collection,
                trace_id=trace_id,
                exc_info=True,
            )
            raise VectorStoreError(f"Failed to add knowledge document: {e}") from e

        logger.info("Knowledge document added", collection=collection, doc_id=doc_id, trace_id=trace_id)
        return doc_id

    def _distance_to_similarity(self, distance: float) -> float:
        """
        Convert a pgvector distance to a similarity score.

        cosine: 1 - distance; L2: 1 / (1 + distance);
        inner product: -distance (pgvector returns the negative).
        """
        if self.config.distance_strategy == DistanceStrategy.COSINE:
            return 1.0 - distance
        if self.config.distance_strategy == DistanceStrategy.EUCLIDEAN:
            return 1.0 / (1.0 + distance)
        return -distance
