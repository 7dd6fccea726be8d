"""
Main FastAPI application for the GraphQL query assistant.

This module sets up the FastAPI application with logging, tracing and
error handling middleware, and wires clients and services in the lifespan.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Union

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from .utils.logging import configure_logging, get_module_logger
from .utils.tracing import get_trace_id
from .utils.yaml_loader import load_prompt_hints
from .constants import APP_NAME, APP_VERSION
from .domain.requests import (
    ArchiveRequest,
    AskRequest,
    ExecuteQueryRequest,
    KnowledgeSearchRequest,
)
from .domain.responses import (
    ArchiveResponse,
    AskResponse,
    ExecuteQueryResponse,
    HealthResponse,
    KnowledgeHit,
    KnowledgeSearchResponse,
    SchemaDiagramResponse,
)
from .api.middleware import (
    ERROR_RESPONSES,
    logging_middleware,
    register_exception_handlers,
    trace_id_middleware,
)
from .api.dependencies import (
    AssistantServiceDep,
    KnowledgeServiceDep,
    OptionalDatabaseClientDep,
    OptionalEmbeddingClientDep,
    OptionalGraphQLClientDep,
    OptionalLLMClientDep,
    QueryExecutorDep,
    SchemaServiceDep,
    SettingsDep,
)
from .config import get_settings
from .infrastructure.database_client import DatabaseClient
from .infrastructure.embedding_client import EmbeddingClient
from .infrastructure.graphql_client import GraphQLClient
from .infrastructure.llm_client import LLMClient
from .repositories.knowledge_repository import KnowledgeRepository
from .repositories.query_execution import QueryExecutionRepository
from .repositories.query_generation import DEFAULT_PROMPT_HINTS
from .repositories.query_validation import QueryValidationRepository
from .repositories.schema_repository import SchemaRepository, count_entities
from .services.knowledge_service import KnowledgeService
from .services.schema_service import SchemaService


# Configure logging on module import
configure_logging()
logger = get_module_logger()


async def _connect(name: str, client) -> None:
    try:
        await client.connect()
        logger.info(f"{name} connected successfully")
    except Exception as e:
        # Continue without it - health check will report status
        logger.error(f"Failed to connect {name}: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"Starting {APP_NAME} API server", version=APP_VERSION)

    settings = get_settings()
    app.state.settings = settings
    logger.info(
        "Settings loaded successfully",
        graphql_endpoint=settings.graphql.endpoint_url,
        max_attempts=settings.loop.max_attempts,
    )

    graphql_client = GraphQLClient(settings.graphql)
    db_client = DatabaseClient(settings.database)
    llm_client = LLMClient(settings.llm)
    embedding_client = EmbeddingClient(settings.embedding)

    await _connect("GraphQL client", graphql_client)
    await _connect("Database client", db_client)
    await _connect("LLM client", llm_client)
    await _connect("Embedding client", embedding_client)

    app.state.graphql_client = graphql_client
    app.state.db_client = db_client
    app.state.llm_client = llm_client
    app.state.embedding_client = embedding_client

    # Process-wide components; per-request services are built in dependencies.py
    knowledge_service = KnowledgeService(
        knowledge_repository=KnowledgeRepository(
            db_client=db_client,
            embedding_client=embedding_client,
            config=settings.vector_store,
        ),
        retrieval_config=settings.retrieval,
        vector_store_config=settings.vector_store,
    )
    app.state.knowledge_service = knowledge_service
    app.state.schema_service = SchemaService(SchemaRepository(graphql_client))
    app.state.query_executor = QueryExecutionRepository(
        graphql_client=graphql_client,
        config=settings.graphql,
        validator=QueryValidationRepository(allow_mutations=settings.graphql.allow_mutations),
        archive=knowledge_service if knowledge_service.archive_enabled else None,
    )
    app.state.prompt_hints = load_prompt_hints(settings.prompt.hints_file, DEFAULT_PROMPT_HINTS)

    yield

    logger.info(f"Shutting down {APP_NAME} API server")

    await app.state.query_executor.drain_archive_tasks()

    for name in ("graphql_client", "db_client", "llm_client", "embedding_client"):
        client = getattr(app.state, name, None)
        if client is not None:
            await client.close()
            logger.info(f"{name} closed")


app = FastAPI(
    title=f"{APP_NAME} API",
    description="Natural language questions answered by generated, executed and self-repaired GraphQL queries",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last registered = first executed
app.middleware("http")(logging_middleware)
app.middleware("http")(trace_id_middleware)

register_exception_handlers(app)


# API Routes
@app.get("/", tags=["Root"])
async def root(settings: SettingsDep) -> Dict[str, Union[str, None]]:
    """
    Root endpoint returning basic API information.

    **Response**: Dict with message, version, trace_id, log_level
    """
    trace_id = get_trace_id()
    logger.info("Root endpoint accessed", trace_id=trace_id)

    return {
        "message": f"{APP_NAME} API",
        "version": APP_VERSION,
        "trace_id": trace_id,
        "log_level": settings.app.log_level,
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(
    graphql_client: OptionalGraphQLClientDep,
    db_client: OptionalDatabaseClientDep,
    llm_client: OptionalLLMClientDep,
    embedding_client: OptionalEmbeddingClientDep,
) -> HealthResponse:
    """
    Health check endpoint.

    Returns:
    - status: Overall health (healthy/degraded)
    - graphql_status: GraphQL endpoint reachability (__typename probe)
    - database_status: pgvector database status
    - llm_service_status / embedding_service_status: client readiness
    """
    graphql_status = "unavailable"
    if graphql_client is not None:
        graphql_status = (await graphql_client.health_check()).get("status", "unknown")

    database_status = "unavailable"
    if db_client is not None:
        database_status = (await db_client.health_check()).get("status", "unknown")

    llm_status = "unavailable"
    if llm_client is not None:
        llm_status = (await llm_client.health_check()).get("status", "unknown")

    embedding_status = "unavailable"
    if embedding_client is not None:
        embedding_status = (await embedding_client.health_check()).get("status", "unknown")

    statuses = (graphql_status, database_status, llm_status, embedding_status)
    overall_status = "healthy" if all(s == "healthy" for s in statuses) else "degraded"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc),
        version=APP_VERSION,
        graphql_status=graphql_status,
        database_status=database_status,
        llm_service_status=llm_status,
        embedding_service_status=embedding_status,
    )


# -------------------------
# Question Answering
# -------------------------

@app.post(
    "/api/v1/ask",
    response_model=AskResponse,
    tags=["Assistant"],
    responses={k: v for k, v in ERROR_RESPONSES.items() if k in [422, 500]},
)
async def ask(request: AskRequest, assistant_service: AssistantServiceDep) -> AskResponse:
    """
    Answer a natural-language question with a generated GraphQL query.

    Pipeline:
    1. Context gathering (schema diagram + knowledge facets, concurrent)
    2. Generate -> execute -> repair, bounded by max_attempts
    3. Natural-language analysis of the final data

    **Response Model**: `AskResponse`
    - status: succeeded, exhausted (budget spent; last query and errors
      included) or failed (unexpected fault; error_message set)
    - attempts: every attempt with its failure kind and errors
    """
    return await assistant_service.ask(
        question=request.question,
        max_attempts=request.max_attempts,
        analyze=request.analyze,
    )


# -------------------------
# Query Execution
# -------------------------

@app.post(
    "/api/v1/query/execute",
    response_model=ExecuteQueryResponse,
    tags=["GraphQL"],
    responses={k: v for k, v in ERROR_RESPONSES.items() if k in [422, 500]},
)
async def execute_query(request: ExecuteQueryRequest, executor: QueryExecutorDep) -> ExecuteQueryResponse:
    """
    Run a single query through the executor.

    The mutation guard, variables check and response truncation apply
    exactly as they do inside a run. Failures are returned in the body
    (success=false), not as HTTP errors.
    """
    trace_id = get_trace_id()
    result = await executor.execute(
        request.query,
        request.variables,
        headers=request.headers,
        max_response_words=request.max_response_words,
    )
    return ExecuteQueryResponse(
        trace_id=trace_id,
        success=result.success,
        data=result.data,
        errors=result.errors,
        failure_kind=result.failure_kind,
        truncated=result.truncated,
    )


# -------------------------
# Schema
# -------------------------

@app.get(
    "/api/v1/schema/diagram",
    response_model=SchemaDiagramResponse,
    tags=["GraphQL"],
    responses={k: v for k, v in ERROR_RESPONSES.items() if k in [500, 502]},
)
async def schema_diagram(
    schema_service: SchemaServiceDep,
    refresh: bool = Query(default=False, description="Re-run introspection instead of using the cache"),
) -> SchemaDiagramResponse:
    """
    Mermaid ER diagram of the GraphQL schema, as embedded in prompts.

    **Possible Errors**:
    - 502: Introspection failed (non-2xx or errors in the response)
    """
    trace_id = get_trace_id()
    diagram = await schema_service.describe(refresh=refresh)
    return SchemaDiagramResponse(
        trace_id=trace_id,
        diagram=diagram,
        entity_count=count_entities(diagram),
    )


# -------------------------
# Knowledge Store
# -------------------------

@app.post(
    "/api/v1/knowledge/search",
    response_model=KnowledgeSearchResponse,
    tags=["Knowledge"],
    responses={k: v for k, v in ERROR_RESPONSES.items() if k in [422, 500, 503]},
)
async def knowledge_search(
    request: KnowledgeSearchRequest,
    knowledge_service: KnowledgeServiceDep,
    settings: SettingsDep,
) -> KnowledgeSearchResponse:
    """
    Raw similarity search, to inspect what context a question pulls in.

    **Possible Errors**:
    - 503: Database or embedding service unavailable
    """
    trace_id = get_trace_id()
    collection = request.collection or settings.vector_store.source_code_collection

    result = await knowledge_service.query(request.query, collection=collection)

    return KnowledgeSearchResponse(
        trace_id=trace_id,
        query=request.query,
        collection=collection,
        context=result.context,
        results=[
            KnowledgeHit(text=hit.text, similarity=hit.similarity, metadata=hit.metadata)
            for hit in result.results
        ],
        result_count=len(result.results),
    )


@app.post(
    "/api/v1/knowledge/archive",
    response_model=ArchiveResponse,
    tags=["Knowledge"],
    responses={k: v for k, v in ERROR_RESPONSES.items() if k in [422, 500, 503]},
)
async def knowledge_archive(
    request: ArchiveRequest,
    knowledge_service: KnowledgeServiceDep,
    settings: SettingsDep,
) -> ArchiveResponse:
    """
    Store a text snippet in the successful-query archive.

    **Possible Errors**:
    - 500: Archive collection not configured
    - 503: Database or embedding service unavailable
    """
    trace_id = get_trace_id()
    doc_id = await knowledge_service.archive(request.text, metadata=request.metadata)
    return ArchiveResponse(
        trace_id=trace_id,
        document_id=doc_id,
        collection=settings.vector_store.successful_queries_collection or "",
    )
