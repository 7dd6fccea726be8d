from enum import Enum


class RunStatus(str, Enum):
    """Final status of an /ask run as reported to callers."""
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


class LoopState(str, Enum):
    """States of the generate -> execute -> repair loop."""
    GENERATING = "generating"
    EXECUTING = "executing"
    REPAIRING = "repairing"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class FailureKind(str, Enum):
    """Why a single attempt failed. Success carries no failure kind."""
    GENERATION = "generation"
    TRANSPORT = "transport"
    GRAPHQL = "graphql"
    TIMEOUT = "timeout"
    MUTATION_REJECTED = "mutation_rejected"
    INVALID_VARIABLES = "invalid_variables"


class OperationType(str, Enum):
    QUERY = "query"
    MUTATION = "mutation"
    SUBSCRIPTION = "subscription"


class ParseFailureReason(str, Enum):
    EMPTY_RESPONSE = "empty_response"
    MISSING_QUERY = "missing_query"
    COMPLETION_TIMEOUT = "completion_timeout"
