"""
Integration tests for the pgvector knowledge store.

This module verifies:
- Database and embedding connectivity
- Table setup
- Archive writes and similarity search in a scratch collection

Usage:
    pytest tests/integration/test_knowledge_store.py -m integration -v

Requirements:
    - DATABASE__DATABASE_URL must be set in .env
    - EMBEDDING__OPENROUTER_API_KEY must be set in .env
    - pgvector extension must be available in database
"""

import uuid

import pytest

from gql_assistant.config import get_settings
from gql_assistant.infrastructure.database_client import DatabaseClient
from gql_assistant.infrastructure.embedding_client import EmbeddingClient
from gql_assistant.repositories.knowledge_repository import KnowledgeRepository
from gql_assistant.services.knowledge_service import KnowledgeService


@pytest.fixture
async def db_client():
    client = DatabaseClient(get_settings().database)
    await client.connect()
    yield client
    if client.is_connected():
        await client.close()


@pytest.fixture
async def embedding_client():
    client = EmbeddingClient(get_settings().embedding)
    await client.connect()
    yield client
    if client.is_connected():
        await client.close()


@pytest.fixture
async def scratch_collection(db_client):
    """Unique collection name; its rows are deleted after the test."""
    name = f"test_{uuid.uuid4().hex[:8]}"
    yield name
    await db_client.execute(
        f"DELETE FROM {get_settings().vector_store.table_name} WHERE collection = $1",
        [name],
    )


@pytest.mark.integration
class TestDatabaseConnection:

    async def test_health_check(self, db_client):
        health = await db_client.health_check()
        assert health["status"] == "healthy"

    async def test_simple_query(self, db_client):
        rows = await db_client.fetch("SELECT 1 AS one")
        assert rows == [{"one": 1}]


@pytest.mark.integration
class TestEmbedding:

    async def test_embedding_dimension(self, embedding_client):
        vector = await embedding_client.embed_query("Web3 Infrastructure round")
        assert len(vector) == get_settings().embedding.embedding_dimension


@pytest.mark.integration
class TestKnowledgeStore:

    async def test_archive_then_search(self, db_client, embedding_client, scratch_collection):
        settings = get_settings()
        service = KnowledgeService(
            KnowledgeRepository(db_client, embedding_client, settings.vector_store),
            settings.retrieval,
            settings.vector_store,
        )

        text = "<query>{ rounds { roundMetadata } }</query>\n<result>{\"rounds\": []}</result>"
        doc_id = await service.archive(
            text,
            metadata={"source": "integration-test"},
            collection=scratch_collection,
        )
        result = await service.query(text, collection=scratch_collection)

        assert doc_id
        assert not result.is_empty
        assert "roundMetadata" in result.results[0].text
