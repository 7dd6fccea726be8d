"""
Custom exception hierarchy for the GraphQL query assistant.

Per-attempt failures inside the repair loop (unparseable output, rejected
or failed queries) are data, carried on ExecutionResult. The exceptions
below are for faults that escape a run or an API call:
- error_code: machine-readable identifier for API responses
- http_status: status code used by the FastAPI exception handlers
- details: optional structured data for debugging

Exception Categories:
- 4xx Client Errors: ValidationError, RunCancelledError
- 5xx Server Errors: LLMError, VectorStoreError, SchemaIntrospectionError, etc.

Usage:
    raise SchemaIntrospectionError("Introspection returned errors", details={"errors": errors})
    raise CallTimeoutError("Completion did not finish in 90s", details={"operation": "generate"})
"""

from typing import Any, Dict, Optional


class GQLAssistantException(Exception):
    """
    Base exception for all assistant errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code (e.g., "LLM_ERROR")
        http_status: HTTP status code to return (default: 500)
        details: Optional dictionary with additional error context
    """

    error_code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        if http_status:
            self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Client Errors (4xx)
# =============================================================================


class ValidationError(GQLAssistantException):
    """
    Raised when input validation fails.

    HTTP Status: 422 Unprocessable Entity
    """

    error_code = "VALIDATION_ERROR"
    http_status = 422


class RunCancelledError(GQLAssistantException):
    """
    Raised when the caller cancels a run between loop iterations.

    HTTP Status: 499 Client Closed Request
    """

    error_code = "RUN_CANCELLED"
    http_status = 499


# =============================================================================
# Configuration Errors (5xx)
# =============================================================================


class ConfigurationError(GQLAssistantException):
    """
    Raised when configuration is invalid or missing.

    Examples:
        - Missing environment variables
        - Unreadable prompt hints file
    """

    error_code = "CONFIGURATION_ERROR"
    http_status = 500


# =============================================================================
# Database Errors (5xx)
# =============================================================================


class DatabaseError(GQLAssistantException):
    """Base class for pgvector database errors."""

    error_code = "DATABASE_ERROR"
    http_status = 503


class DatabaseConnectionError(DatabaseError):
    """
    Raised when the database connection fails.

    Examples:
        - Connection timeout
        - Authentication failure
    """

    error_code = "DATABASE_CONNECTION_ERROR"
    http_status = 503


class DatabaseQueryError(DatabaseError):
    """Raised when a database statement fails."""

    error_code = "DATABASE_QUERY_ERROR"
    http_status = 500


# =============================================================================
# Schema Errors (5xx)
# =============================================================================


class SchemaIntrospectionError(GQLAssistantException):
    """
    Raised when the GraphQL schema cannot be introspected.

    HTTP Status: 502 Bad Gateway

    Examples:
        - Endpoint returned a non-2xx status
        - Introspection response carried an errors array
    """

    error_code = "SCHEMA_INTROSPECTION_ERROR"
    http_status = 502


class GraphQLTransportError(GQLAssistantException):
    """
    Raised by GraphQLClient when a request cannot be completed.

    HTTP Status: 502 Bad Gateway

    Examples:
        - Endpoint unreachable
        - Connection reset mid-response
    """

    error_code = "GRAPHQL_TRANSPORT_ERROR"
    http_status = 502


# =============================================================================
# Vector Store Errors (5xx)
# =============================================================================


class VectorStoreError(GQLAssistantException):
    """
    Raised when vector store operations fail.

    Examples:
        - Similarity search failure
        - Archive write failure
    """

    error_code = "VECTOR_STORE_ERROR"
    http_status = 503


# =============================================================================
# LLM Errors (5xx)
# =============================================================================


class LLMError(GQLAssistantException):
    """
    Raised when the completion API call itself fails.

    An empty completion is not an error; callers treat it as a failed
    generation attempt.

    Examples:
        - LLM API unreachable
        - Authentication failure
        - Context length exceeded
    """

    error_code = "LLM_ERROR"
    http_status = 503


class EmbeddingError(GQLAssistantException):
    """
    Raised when embedding operations fail.

    Examples:
        - Embedding API failure
        - Dimension mismatch
    """

    error_code = "EMBEDDING_ERROR"
    http_status = 503


# =============================================================================
# Timeouts (5xx)
# =============================================================================


class CallTimeoutError(GQLAssistantException):
    """
    Raised when an external call exceeds its per-call deadline.

    Kept distinct from GraphQL errors so a repair prompt can tell
    "the server never responded" apart from "the server rejected the query".

    HTTP Status: 504 Gateway Timeout
    """

    error_code = "CALL_TIMEOUT"
    http_status = 504


# =============================================================================
# Service Unavailable (5xx)
# =============================================================================


class ServiceUnavailableError(GQLAssistantException):
    """
    Raised when a required service is not available.

    Examples:
        - GraphQL client not connected
        - LLM service not initialized
    """

    error_code = "SERVICE_UNAVAILABLE"
    http_status = 503
