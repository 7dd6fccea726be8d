"""
Infrastructure layer for external integrations.

Clients for the GraphQL endpoint, the pgvector database, and the
LLM and embedding providers.
"""

from .database_client import DatabaseClient
from .embedding_client import EmbeddingClient
from .graphql_client import GraphQLClient
from .llm_client import LLMClient

__all__ = ["DatabaseClient", "EmbeddingClient", "GraphQLClient", "LLMClient"]
