"""
API response models for the GraphQL query assistant.

These models define the structure for all outgoing API responses,
plus the analyzer result shared by services.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .base_enums import FailureKind, RunStatus


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Health status", examples=["healthy", "degraded"])
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")
    graphql_status: str = Field(..., description="GraphQL endpoint status")
    database_status: str = Field(..., description="pgvector database status")
    llm_service_status: str = Field(..., description="LLM service status")
    embedding_service_status: str = Field(..., description="Embedding service status")


class ErrorResponse(BaseModel):
    """Response model for error responses."""

    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details"
    )
    trace_id: Optional[str] = Field(
        default=None,
        description="Trace ID for debugging"
    )
    timestamp: datetime = Field(..., description="Error timestamp")


class AnalysisResult(BaseModel):
    """Natural-language analysis of a query result."""

    analysis: str = Field(..., description="Analysis text")
    relevance: int = Field(..., ge=0, le=10, description="Relevance of the result to the question (0-10)")
    success: bool = Field(..., description="False when the analysis fell back to the fixed message")


class AttemptSummary(BaseModel):
    """One attempt of a run, as reported to API callers."""

    attempt_index: int = Field(..., description="1-based attempt ordinal")
    query: str = Field(..., description="Query text (empty if generation failed)")
    variables: str = Field(..., description="Variables JSON text")
    explanation: str = Field(..., description="Model rationale, or raw text when parsing failed")
    success: bool = Field(..., description="Whether the attempt executed successfully")
    failure_kind: Optional[FailureKind] = Field(None, description="Why the attempt failed")
    errors: List[Any] = Field(default_factory=list, description="Errors reported for the attempt")


class AskResponse(BaseModel):
    """Response model for the question endpoint."""

    trace_id: str = Field(..., description="Unique trace ID for this request")
    status: RunStatus = Field(..., description="succeeded, exhausted or failed")

    # Original question
    question: str = Field(..., description="Original natural language question")

    # Final attempt
    query: Optional[str] = Field(None, description="Final GraphQL query")
    variables: Optional[str] = Field(None, description="Final variables JSON text")
    explanation: Optional[str] = Field(None, description="Model rationale for the final query")
    data: Any = Field(None, description="Result data; truncated text when it exceeded the word ceiling")
    truncated: bool = Field(default=False, description="Whether data was truncated")

    # Analysis
    analysis: Optional[str] = Field(None, description="Natural-language analysis of the data")
    relevance: Optional[int] = Field(None, description="Relevance score (0-10)")

    # Diagnostics
    attempts: List[AttemptSummary] = Field(default_factory=list, description="Every attempt in order")
    error_message: Optional[str] = Field(None, description="Last error, or the fault for failed runs")

    # Timing
    total_time_ms: float = Field(..., description="Total request processing time in milliseconds")


class ExecuteQueryResponse(BaseModel):
    """Response model for the single-query execution endpoint."""

    trace_id: str = Field(..., description="Unique trace ID for this request")
    success: bool = Field(..., description="Whether the query executed successfully")
    data: Any = Field(None, description="Result data (possibly truncated text)")
    errors: List[Any] = Field(default_factory=list, description="Transport or GraphQL errors")
    failure_kind: Optional[FailureKind] = Field(None, description="Why the query failed")
    truncated: bool = Field(default=False, description="Whether data was truncated")


class SchemaDiagramResponse(BaseModel):
    """Response model for the schema diagram endpoint."""

    trace_id: str = Field(..., description="Unique trace ID for this request")
    diagram: str = Field(..., description="Mermaid erDiagram of the GraphQL schema")
    entity_count: int = Field(..., description="Number of entities in the diagram")


class KnowledgeHit(BaseModel):
    """Single knowledge search hit."""

    text: str = Field(..., description="Chunk text")
    similarity: float = Field(..., description="Similarity score (0.0 to 1.0)")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Chunk metadata")


class KnowledgeSearchResponse(BaseModel):
    """Response model for knowledge search."""

    trace_id: str = Field(..., description="Unique trace ID for this request")
    query: str = Field(..., description="Original search text")
    collection: str = Field(..., description="Collection that was searched")
    context: str = Field(..., description="Rendered context as it would appear in a prompt")
    results: List[KnowledgeHit] = Field(..., description="Search hits")
    result_count: int = Field(..., description="Number of hits")


class ArchiveResponse(BaseModel):
    """Response model for archive writes."""

    trace_id: str = Field(..., description="Unique trace ID for this request")
    document_id: str = Field(..., description="Identifier of the stored document")
    collection: str = Field(..., description="Collection written to")
