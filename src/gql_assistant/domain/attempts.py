"""
Attempt, result and outcome models for the repair loop.

All models are frozen: every attempt gets its own result and nothing
mutates either after creation. The loop keeps them in an ordered history.
"""

import json
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .base_enums import FailureKind, ParseFailureReason


class QueryAttempt(BaseModel):
    """A generated query ready to execute."""

    model_config = ConfigDict(frozen=True)

    query: str = Field(..., description="GraphQL document including variable declarations")
    variables: str = Field(default="{}", description="Variables as JSON text")
    explanation: str = Field(default="", description="Model's rationale, advisory only")
    attempt_index: int = Field(..., ge=1, description="1-based ordinal within the run")
    raw_response: str = Field(default="", description="Unparsed completion text")


class ParseFailure(BaseModel):
    """Completion text that did not contain a usable query."""

    model_config = ConfigDict(frozen=True)

    reason: ParseFailureReason
    attempt_index: int = Field(..., ge=1)
    raw_response: str = ""

    @property
    def explanation(self) -> str:
        # The raw text is the only evidence of what went wrong
        return self.raw_response

    @property
    def query(self) -> str:
        return ""

    @property
    def variables(self) -> str:
        return ""


Attempt = Union[QueryAttempt, ParseFailure]


class ExecutionResult(BaseModel):
    """
    Normalized outcome of one attempt.

    success is the only success signal; failure_kind is set exactly when
    success is False.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    data: Any = None
    errors: List[Any] = Field(default_factory=list)
    failure_kind: Optional[FailureKind] = None
    truncated: bool = False

    @model_validator(mode="after")
    def _check_failure_kind(self) -> "ExecutionResult":
        if self.success and self.failure_kind is not None:
            raise ValueError("successful result cannot carry a failure kind")
        if not self.success and self.failure_kind is None:
            raise ValueError("failed result requires a failure kind")
        return self

    @classmethod
    def ok(cls, data: Any, truncated: bool = False) -> "ExecutionResult":
        return cls(success=True, data=data, truncated=truncated)

    @classmethod
    def failed(
        cls,
        kind: FailureKind,
        errors: List[Any],
        data: Any = None,
    ) -> "ExecutionResult":
        return cls(success=False, failure_kind=kind, errors=list(errors), data=data)

    def errors_text(self) -> str:
        """Serialize errors for a repair prompt, keeping every field the server sent."""
        if not self.errors:
            return ""
        if all(isinstance(e, str) for e in self.errors):
            return "\n".join(self.errors)
        return json.dumps(self.errors, indent=2, ensure_ascii=False, default=str)


class AttemptRecord(BaseModel):
    """One entry of a run's history."""

    model_config = ConfigDict(frozen=True)

    attempt: Attempt
    result: ExecutionResult


class Succeeded(BaseModel):
    """Terminal state: an attempt executed successfully."""

    model_config = ConfigDict(frozen=True)

    status: Literal["succeeded"] = "succeeded"
    attempt: QueryAttempt
    result: ExecutionResult
    history: List[AttemptRecord] = Field(default_factory=list)

    @property
    def attempt_count(self) -> int:
        return self.attempt.attempt_index


class Exhausted(BaseModel):
    """Terminal state: the attempt budget ran out without a success."""

    model_config = ConfigDict(frozen=True)

    status: Literal["exhausted"] = "exhausted"
    last_attempt: Attempt
    last_result: ExecutionResult
    attempt_count: int
    history: List[AttemptRecord] = Field(default_factory=list)


RunOutcome = Union[Succeeded, Exhausted]
