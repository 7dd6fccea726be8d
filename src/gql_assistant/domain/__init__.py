"""
Domain package for the GraphQL query assistant.

This package contains the models, enums and capability interfaces
used throughout the application.
"""

from .base_enums import (
    FailureKind,
    LoopState,
    OperationType,
    ParseFailureReason,
    RunStatus,
)
from .attempts import (
    Attempt,
    AttemptRecord,
    ExecutionResult,
    Exhausted,
    ParseFailure,
    QueryAttempt,
    RunOutcome,
    Succeeded,
)
from .context import ContextBundle, KnowledgeResult, KnowledgeSnippet, PromptHints
from .protocols import (
    CompletionEngine,
    ContextProvider,
    KnowledgeRetriever,
    QueryExecutor,
    SchemaDescriber,
)
from .requests import AskRequest, ArchiveRequest, ExecuteQueryRequest, KnowledgeSearchRequest
from .responses import (
    AnalysisResult,
    ArchiveResponse,
    AskResponse,
    AttemptSummary,
    ErrorResponse,
    ExecuteQueryResponse,
    HealthResponse,
    KnowledgeHit,
    KnowledgeSearchResponse,
    SchemaDiagramResponse,
)

__all__ = [
    # Enums
    "FailureKind",
    "LoopState",
    "OperationType",
    "ParseFailureReason",
    "RunStatus",

    # Attempts and outcomes
    "Attempt",
    "AttemptRecord",
    "ExecutionResult",
    "Exhausted",
    "ParseFailure",
    "QueryAttempt",
    "RunOutcome",
    "Succeeded",

    # Context
    "ContextBundle",
    "KnowledgeResult",
    "KnowledgeSnippet",
    "PromptHints",

    # Capabilities
    "CompletionEngine",
    "ContextProvider",
    "KnowledgeRetriever",
    "QueryExecutor",
    "SchemaDescriber",

    # Requests
    "AskRequest",
    "ArchiveRequest",
    "ExecuteQueryRequest",
    "KnowledgeSearchRequest",

    # Responses
    "AnalysisResult",
    "ArchiveResponse",
    "AskResponse",
    "AttemptSummary",
    "ErrorResponse",
    "ExecuteQueryResponse",
    "HealthResponse",
    "KnowledgeHit",
    "KnowledgeSearchResponse",
    "SchemaDiagramResponse",
]
