"""
Integration tests against a live GraphQL endpoint.

Usage:
    # Run all endpoint tests
    pytest tests/integration/test_graphql_endpoint.py -m integration -v

Requirements:
    - GRAPHQL__ENDPOINT_URL must point at a reachable endpoint
      (e.g. https://beta.indexer.gitcoin.co/v1/graphql)
"""

import pytest

from gql_assistant.config import get_settings
from gql_assistant.domain.base_enums import FailureKind
from gql_assistant.infrastructure.graphql_client import GraphQLClient
from gql_assistant.repositories.query_execution import QueryExecutionRepository
from gql_assistant.repositories.schema_repository import SchemaRepository
from gql_assistant.services.schema_service import SchemaService


@pytest.fixture
def graphql_settings():
    """Get GraphQL configuration from settings."""
    return get_settings().graphql


@pytest.fixture
async def graphql_client(graphql_settings):
    """Create and connect GraphQL client."""
    client = GraphQLClient(graphql_settings)
    await client.connect()
    yield client
    if client.is_connected():
        await client.close()


@pytest.mark.integration
class TestGraphQLConnection:
    """Integration tests for endpoint connectivity."""

    async def test_basic_connection(self, graphql_settings):
        client = GraphQLClient(graphql_settings)

        await client.connect()
        assert client.is_connected()

        await client.close()
        assert not client.is_connected()

    async def test_health_check(self, graphql_client):
        health = await graphql_client.health_check()
        assert health["status"] == "healthy"


@pytest.mark.integration
class TestSchemaIntrospection:

    async def test_diagram_has_entities(self, graphql_client):
        service = SchemaService(SchemaRepository(graphql_client))

        diagram = await service.describe()

        assert diagram.startswith("erDiagram")
        assert "{" in diagram
        assert service.is_cached


@pytest.mark.integration
class TestQueryExecution:

    async def test_typename_query(self, graphql_client, graphql_settings):
        executor = QueryExecutionRepository(graphql_client, graphql_settings)

        result = await executor.execute("query { __typename }")

        assert result.success is True
        assert "__typename" in result.data

    async def test_unknown_field_is_graphql_failure(self, graphql_client, graphql_settings):
        executor = QueryExecutionRepository(graphql_client, graphql_settings)

        result = await executor.execute("query { definitelyNotAField }")

        assert result.success is False
        assert result.failure_kind == FailureKind.GRAPHQL
        assert result.errors
