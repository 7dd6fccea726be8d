"""
FastAPI dependencies for dependency injection.

Clients and the stateful components (the schema diagram cache, the
knowledge repository and the query executor with its pending archive
writes) are created once in the application lifespan and kept on
app.state. Stateless services are built per request from them,
following the layered architecture: API -> Service -> Repository -> Infrastructure.
"""

from typing import Annotated, Optional

from fastapi import Depends, Request

from ..config import Settings
from ..domain.context import PromptHints
from ..domain.errors import ServiceUnavailableError
from ..infrastructure.database_client import DatabaseClient
from ..infrastructure.embedding_client import EmbeddingClient
from ..infrastructure.graphql_client import GraphQLClient
from ..infrastructure.llm_client import LLMClient
from ..repositories.query_execution import QueryExecutionRepository
from ..repositories.query_generation import QueryGenerationRepository
from ..repositories.result_analysis import ResultAnalysisRepository
from ..services.assistant_service import AssistantService
from ..services.context_service import ContextService
from ..services.knowledge_service import KnowledgeService
from ..services.repair_loop import RepairLoop
from ..services.schema_service import SchemaService


def _require_state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise ServiceUnavailableError(f"{name} not initialized")
    return value


def get_settings(request: Request) -> Settings:
    """
    Dependency to get the settings from app state.

    Usage in routes:
        @app.get("/config")
        async def get_config(settings: SettingsDep):
            return {"log_level": settings.app.log_level}
    """
    return _require_state(request, "settings")


# Optional client getters for the health check
def get_graphql_client_optional(request: Request) -> Optional[GraphQLClient]:
    return getattr(request.app.state, "graphql_client", None)


def get_db_client_optional(request: Request) -> Optional[DatabaseClient]:
    return getattr(request.app.state, "db_client", None)


def get_llm_client_optional(request: Request) -> Optional[LLMClient]:
    return getattr(request.app.state, "llm_client", None)


def get_embedding_client_optional(request: Request) -> Optional[EmbeddingClient]:
    return getattr(request.app.state, "embedding_client", None)


def get_schema_service(request: Request) -> SchemaService:
    """The process-wide SchemaService (holds the cached diagram)."""
    return _require_state(request, "schema_service")


def get_query_executor(request: Request) -> QueryExecutionRepository:
    """The process-wide executor (tracks background archive writes)."""
    return _require_state(request, "query_executor")


def get_knowledge_service(request: Request) -> KnowledgeService:
    """
    The process-wide KnowledgeService.

    KnowledgeService -> KnowledgeRepository -> DatabaseClient + EmbeddingClient (shared);
    the repository remembers that its table and indexes exist.
    """
    return _require_state(request, "knowledge_service")


def get_assistant_service(request: Request) -> AssistantService:
    """
    Dependency to get an AssistantService instance.

    AssistantService (orchestrator)
      ├── ContextService (SchemaService + KnowledgeService, concurrent)
      ├── RepairLoop
      │     ├── QueryGenerationRepository (LLM)
      │     └── QueryExecutionRepository (GraphQL)
      └── ResultAnalysisRepository (LLM)
    """
    settings: Settings = _require_state(request, "settings")
    llm_client: LLMClient = _require_state(request, "llm_client")
    prompt_hints: PromptHints = _require_state(request, "prompt_hints")

    context_service = ContextService(
        schema_describer=get_schema_service(request),
        knowledge_retriever=get_knowledge_service(request),
        vector_store_config=settings.vector_store,
    )

    repair_loop = RepairLoop(
        generation_repository=QueryGenerationRepository(engine=llm_client, hints=prompt_hints),
        executor=get_query_executor(request),
        config=settings.loop,
        context_provider=context_service,
    )

    return AssistantService(
        context_service=context_service,
        repair_loop=repair_loop,
        analysis_repository=ResultAnalysisRepository(
            engine=llm_client,
            timeout_seconds=settings.loop.call_timeout_seconds,
        ),
    )


# Type aliases for cleaner dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
AssistantServiceDep = Annotated[AssistantService, Depends(get_assistant_service)]
SchemaServiceDep = Annotated[SchemaService, Depends(get_schema_service)]
KnowledgeServiceDep = Annotated[KnowledgeService, Depends(get_knowledge_service)]
QueryExecutorDep = Annotated[QueryExecutionRepository, Depends(get_query_executor)]

# Optional client dependencies (used in health checks)
OptionalGraphQLClientDep = Annotated[Optional[GraphQLClient], Depends(get_graphql_client_optional)]
OptionalDatabaseClientDep = Annotated[Optional[DatabaseClient], Depends(get_db_client_optional)]
OptionalLLMClientDep = Annotated[Optional[LLMClient], Depends(get_llm_client_optional)]
OptionalEmbeddingClientDep = Annotated[Optional[EmbeddingClient], Depends(get_embedding_client_optional)]
