"""
Query Validation Repository.

Static checks applied to every generated query before it leaves the process.

Checks:
1. Syntax: the document must parse with graphql-core
2. Operation type: mutations are rejected unless explicitly allowed
3. Variables: the variables text must decode to a JSON object

All checks are pure functions (no I/O). A failed check is returned as a
ValidationOutcome carrying an ExecutionResult, never raised, so the
executor can hand it straight back to the repair loop.
"""

import json
from dataclasses import dataclass
from typing import List, Optional

from graphql import GraphQLError, OperationDefinitionNode, parse

from gql_assistant.constants import MUTATIONS_NOT_ALLOWED
from gql_assistant.domain.attempts import ExecutionResult
from gql_assistant.domain.base_enums import FailureKind, OperationType
from gql_assistant.domain.types import JsonObject
from gql_assistant.utils.logging import get_module_logger

logger = get_module_logger()


def classify_operations(query: str) -> List[OperationType]:
    """
    Operation types of every operation definition in the document.

    Raises:
        GraphQLError: If the document does not parse
    """
    document = parse(query)
    return [
        OperationType(definition.operation.value)
        for definition in document.definitions
        if isinstance(definition, OperationDefinitionNode)
    ]


def contains_mutation(query: str) -> bool:
    """True when any operation in a parseable document is a mutation."""
    return OperationType.MUTATION in classify_operations(query)


def parse_variables(variables: Optional[str]) -> Optional[JsonObject]:
    """
    Decode variables text.

    Blank or missing text means no variables (None).

    Raises:
        ValueError: If the text is not JSON or not a JSON object
    """
    if variables is None or not variables.strip():
        return None

    try:
        decoded = json.loads(variables)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid variables JSON: {e}") from e

    if not isinstance(decoded, dict):
        raise ValueError(f"Variables must be a JSON object, got {type(decoded).__name__}")
    return decoded


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of pre-flight checks: decoded variables or a failed result."""

    variables: Optional[JsonObject] = None
    failure: Optional[ExecutionResult] = None

    @property
    def passed(self) -> bool:
        return self.failure is None


class QueryValidationRepository:
    """
    Repository for pre-flight query validation.

    The mutation guard is a safety invariant: with allow_mutations False a
    mutation never reaches the endpoint, whatever attempt produced it.
    """

    def __init__(self, allow_mutations: bool = False):
        self.allow_mutations = allow_mutations

    def validate(self, query: str, variables: Optional[str]) -> ValidationOutcome:
        """Run all checks in order; the first failing check wins."""
        try:
            operations = classify_operations(query)
        except GraphQLError as e:
            logger.info("Query failed to parse", error=e.message)
            return ValidationOutcome(
                failure=ExecutionResult.failed(
                    FailureKind.GRAPHQL,
                    [{"message": e.message, "locations": _locations(e)}],
                )
            )

        if not operations:
            return ValidationOutcome(
                failure=ExecutionResult.failed(
                    FailureKind.GRAPHQL,
                    ["Document contains no executable operation"],
                )
            )

        if OperationType.MUTATION in operations and not self.allow_mutations:
            logger.warning("Mutation rejected by guard", operation_count=len(operations))
            return ValidationOutcome(
                failure=ExecutionResult.failed(FailureKind.MUTATION_REJECTED, [MUTATIONS_NOT_ALLOWED])
            )

        try:
            decoded = parse_variables(variables)
        except ValueError as e:
            return ValidationOutcome(
                failure=ExecutionResult.failed(FailureKind.INVALID_VARIABLES, [str(e)])
            )

        return ValidationOutcome(variables=decoded)


def _locations(error: GraphQLError) -> List[dict]:
    return [{"line": loc.line, "column": loc.column} for loc in error.locations or []]
