"""
Query Execution Repository.

Sends generated queries to the GraphQL endpoint and normalizes every
outcome into an ExecutionResult.

Execution Flow:
1. Pre-flight validation (syntax, mutation guard, variables JSON)
2. POST {"query", "variables"} with default + per-call headers
3. Normalize: non-2xx / network error / malformed body -> transport failure,
   errors array -> graphql failure (partial data kept), otherwise success
4. Bound successful payloads by word count (lossy, see text_utils.truncate_words)
5. Archive successful query/result pairs in the background

Error Handling:
- Per-attempt failures are returned as data, never raised
- Archive failures are logged and never affect the returned result
"""

import asyncio
import json
from typing import Any, Dict, Optional, Set, Union

from gql_assistant.config import GraphQLConfig
from gql_assistant.domain.attempts import ExecutionResult
from gql_assistant.domain.base_enums import FailureKind
from gql_assistant.domain.errors import CallTimeoutError, GraphQLTransportError
from gql_assistant.domain.protocols import KnowledgeRetriever
from gql_assistant.domain.types import Headers
from gql_assistant.infrastructure.graphql_client import GraphQLClient
from gql_assistant.repositories.query_validation import QueryValidationRepository
from gql_assistant.utils.logging import get_module_logger
from gql_assistant.utils.text_utils import serialize_payload, truncate_payload
from gql_assistant.utils.tracing import current_trace_id

logger = get_module_logger()

_BODY_EXCERPT_CHARS = 500


def merge_headers(extra: Union[Headers, str, None]) -> Optional[Headers]:
    """
    Normalize per-call headers.

    Accepts a mapping or JSON object text. Unparseable text is ignored
    with a warning rather than failing the call.
    """
    if extra is None:
        return None
    if isinstance(extra, str):
        if not extra.strip():
            return None
        try:
            decoded = json.loads(extra)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring invalid headers JSON", error=str(e))
            return None
        if not isinstance(decoded, dict):
            logger.warning("Ignoring headers that are not a JSON object")
            return None
        extra = decoded
    return {str(key): str(value) for key, value in extra.items()}


def format_archive_entry(query: str, data: Any) -> str:
    return f"<query>{query}</query>\n<result>{serialize_payload(data)}</result>"


class QueryExecutionRepository:
    """
    Repository for GraphQL execution.

    Stateless per call apart from the set of pending archive writes.
    """

    def __init__(
        self,
        graphql_client: GraphQLClient,
        config: GraphQLConfig,
        validator: Optional[QueryValidationRepository] = None,
        archive: Optional[KnowledgeRetriever] = None,
    ):
        self.graphql_client = graphql_client
        self.config = config
        self.validator = validator or QueryValidationRepository(allow_mutations=config.allow_mutations)
        self.archive = archive
        self._archive_tasks: Set[asyncio.Task] = set()

    async def execute(
        self,
        query: str,
        variables: Optional[str] = None,
        *,
        endpoint: Optional[str] = None,
        headers: Union[Headers, str, None] = None,
        max_response_words: Optional[int] = None,
    ) -> ExecutionResult:
        """
        Execute one query and normalize the outcome.

        Args:
            query: GraphQL document
            variables: Variables as JSON object text; blank sends none
            endpoint: Override the configured endpoint URL
            headers: Extra headers (mapping or JSON text) merged over the defaults
            max_response_words: Override the configured word ceiling

        Returns:
            ExecutionResult; never raises for endpoint or query problems
        """
        trace_id = current_trace_id()

        outcome = self.validator.validate(query, variables)
        if not outcome.passed:
            logger.info(
                "Query rejected before execution",
                failure_kind=outcome.failure.failure_kind,
                trace_id=trace_id,
            )
            return outcome.failure

        payload: Dict[str, Any] = {"query": query}
        if outcome.variables is not None:
            payload["variables"] = outcome.variables

        logger.info(
            "Executing GraphQL query",
            query_length=len(query),
            has_variables=outcome.variables is not None,
            trace_id=trace_id,
        )

        try:
            response = await self.graphql_client.post(
                payload,
                headers=merge_headers(headers),
                endpoint=endpoint,
            )
        except CallTimeoutError as e:
            return ExecutionResult.failed(FailureKind.TIMEOUT, [e.message])
        except GraphQLTransportError as e:
            return ExecutionResult.failed(FailureKind.TRANSPORT, [e.message])

        if not response.is_success:
            logger.warning(
                "GraphQL endpoint returned non-2xx",
                status_code=response.status_code,
                trace_id=trace_id,
            )
            return ExecutionResult.failed(
                FailureKind.TRANSPORT,
                [{
                    "message": f"GraphQL request failed: {response.status_code} {response.reason_phrase}",
                    "status_code": response.status_code,
                    "body": response.text[:_BODY_EXCERPT_CHARS],
                }],
            )

        try:
            body = response.json()
        except ValueError as e:
            return ExecutionResult.failed(
                FailureKind.TRANSPORT,
                [f"Malformed JSON response: {e}", response.text[:_BODY_EXCERPT_CHARS]],
            )

        if not isinstance(body, dict):
            return ExecutionResult.failed(
                FailureKind.TRANSPORT,
                [f"Unexpected response body of type {type(body).__name__}"],
            )

        errors = body.get("errors")
        data = body.get("data")

        if errors:
            logger.info(
                "GraphQL query returned errors",
                error_count=len(errors) if isinstance(errors, list) else 1,
                trace_id=trace_id,
            )
            return ExecutionResult.failed(
                FailureKind.GRAPHQL,
                errors if isinstance(errors, list) else [errors],
                data=data,
            )

        word_limit = max_response_words if max_response_words is not None else self.config.max_response_words
        bounded, truncated = truncate_payload(data, word_limit, self.config.truncation_suffix)

        logger.info(
            "GraphQL query succeeded",
            truncated=truncated,
            trace_id=trace_id,
        )

        self._schedule_archive(query, variables, data)
        return ExecutionResult.ok(bounded, truncated=truncated)

    # =========================================================================
    # Successful query archive
    # =========================================================================

    def _schedule_archive(self, query: str, variables: Optional[str], data: Any) -> None:
        if self.archive is None:
            return
        task = asyncio.create_task(self._archive(query, variables, data))
        self._archive_tasks.add(task)
        task.add_done_callback(self._archive_tasks.discard)

    async def _archive(self, query: str, variables: Optional[str], data: Any) -> None:
        trace_id = current_trace_id()
        try:
            await self.archive.archive(
                format_archive_entry(query, data),
                metadata={"source": "successful_query", "variables": variables or ""},
            )
            logger.info("Successful query archived", trace_id=trace_id)
        except Exception as e:
            # The executed result has already been returned; only report
            logger.warning(
                "Failed to archive successful query",
                error=str(e),
                error_type=type(e).__name__,
                trace_id=trace_id,
            )

    @property
    def pending_archive_writes(self) -> int:
        return len(self._archive_tasks)

    async def drain_archive_tasks(self) -> None:
        """Wait for pending archive writes (shutdown and tests)."""
        if self._archive_tasks:
            await asyncio.gather(*list(self._archive_tasks), return_exceptions=True)
