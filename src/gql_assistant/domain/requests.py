"""
API request models for the GraphQL query assistant.

All fields include descriptions that appear in Swagger/OpenAPI documentation.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class AskRequest(BaseModel):
    """
    Request model for the main question endpoint.

    The question is answered by generating a GraphQL query, executing it,
    repairing it on failure, and summarizing the final data.
    """

    question: str = Field(
        ...,
        description="Natural language question about the indexed dataset. "
                    "Examples: 'What is round 865's metadata?', "
                    "'How many applications were approved in the Developer Tooling round?'",
        min_length=1,
        max_length=4000,
        json_schema_extra={"example": "What is round 865's metadata?"}
    )
    max_attempts: Optional[int] = Field(
        default=None,
        description="Override the attempt budget for this run (generation + repairs). "
                    "If not provided, uses LOOP__MAX_ATTEMPTS.",
        ge=1,
        le=10,
        json_schema_extra={"example": 3}
    )
    analyze: bool = Field(
        default=True,
        description="If false, skips the natural-language analysis of the result."
    )


class ExecuteQueryRequest(BaseModel):
    """
    Request model for running a single query through the executor.

    The mutation guard and response truncation apply exactly as in a run.
    """

    query: str = Field(
        ...,
        description="GraphQL document to execute.",
        min_length=1,
        json_schema_extra={"example": "query { rounds(limit: 1) { id } }"}
    )
    variables: Optional[str] = Field(
        default=None,
        description="Variables as JSON object text. Empty or omitted sends no variables.",
        json_schema_extra={"example": '{"roundId": "865", "chainId": 42161}'}
    )
    headers: Optional[Dict[str, str]] = Field(
        default=None,
        description="Extra headers merged over the configured defaults for this call."
    )
    max_response_words: Optional[int] = Field(
        default=None,
        description="Override the word ceiling for the returned payload.",
        ge=1
    )


class KnowledgeSearchRequest(BaseModel):
    """
    Request model for raw knowledge retrieval.

    Use this endpoint to check what context a question would pull in.
    """

    query: str = Field(
        ...,
        description="Free text to embed and search for.",
        min_length=1,
        max_length=2000,
        json_schema_extra={"example": "Events with @param or @notice similar to: round metadata"}
    )
    collection: Optional[str] = Field(
        default=None,
        description="Collection to search. Defaults to the source code collection.",
        json_schema_extra={"example": "gitcoin_code_embeddings"}
    )


class ArchiveRequest(BaseModel):
    """Request model for adding a text snippet to the successful-query archive."""

    text: str = Field(
        ...,
        description="Text to embed and store, typically '<query>...</query>\\n<result>...</result>'.",
        min_length=1
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Metadata stored alongside the embedding."
    )
