"""
Repair Loop - bounded generate -> execute -> repair state machine.

States:
    GENERATING -> EXECUTING -> SUCCEEDED
                            -> REPAIRING -> EXECUTING -> ...
                            -> EXHAUSTED (budget spent)

Key rules:
- Every attempt (including one that produced no parseable query) consumes
  one unit of the max_attempts budget
- Attempts are strictly sequential: attempt N+1's prompt carries attempt
  N's query and errors
- Per-attempt failures are data (ExecutionResult), never exceptions;
  only engine faults such as LLMError propagate out of run()
- Whatever the repair produces is executed, even if it repeats the
  failed query
"""

import asyncio
from typing import Optional

from gql_assistant.config import RepairLoopConfig
from gql_assistant.domain.attempts import (
    Attempt,
    ExecutionResult,
    Exhausted,
    ParseFailure,
    QueryAttempt,
    RunOutcome,
    Succeeded,
)
from gql_assistant.domain.base_enums import FailureKind, LoopState, ParseFailureReason
from gql_assistant.domain.context import ContextBundle
from gql_assistant.domain.errors import ConfigurationError, RunCancelledError, ValidationError
from gql_assistant.domain.pipeline import RunState
from gql_assistant.domain.protocols import ContextProvider, QueryExecutor
from gql_assistant.repositories.query_generation import QueryGenerationRepository
from gql_assistant.repositories.response_parsing import parse_attempt
from gql_assistant.utils.logging import get_module_logger
from gql_assistant.utils.tracing import current_trace_id

logger = get_module_logger()


def generation_failure_message(failure: ParseFailure, timeout_seconds: float) -> str:
    """Error text fed into the next repair prompt for an attempt with no query."""
    if failure.reason == ParseFailureReason.EMPTY_RESPONSE:
        return "The previous response was empty. Respond with <query> and <variables> tags."
    if failure.reason == ParseFailureReason.COMPLETION_TIMEOUT:
        return f"Query generation did not finish within {timeout_seconds:g}s."
    return (
        "No <query> tag was found in the previous response. "
        "Wrap the GraphQL query in <query></query> tags and the variables in <variables></variables> tags."
    )


class RepairLoop:
    """
    Runs one question through the bounded repair loop.

    Collaborators are injected; the loop keeps no state between runs.
    """

    def __init__(
        self,
        generation_repository: QueryGenerationRepository,
        executor: QueryExecutor,
        config: RepairLoopConfig,
        context_provider: Optional[ContextProvider] = None,
    ):
        self.generation_repo = generation_repository
        self.executor = executor
        self.config = config
        self.context_provider = context_provider

        logger.info(
            "RepairLoop initialized",
            max_attempts=config.max_attempts,
            refresh_context_on_repair=config.refresh_context_on_repair,
            call_timeout_seconds=config.call_timeout_seconds,
        )

    async def run(
        self,
        question: str,
        context: Optional[ContextBundle] = None,
        max_attempts: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunOutcome:
        """
        Generate, execute and repair until success or the budget is spent.

        Args:
            question: Natural-language question
            context: Prebuilt context; built via the context provider when None
            max_attempts: Per-run override of the configured budget
            cancel_event: Checked between iterations; when set the run stops

        Returns:
            Succeeded or Exhausted

        Raises:
            RunCancelledError: If cancel_event is set between iterations
            LLMError: If the completion engine call itself fails
        """
        trace_id = current_trace_id()
        budget = max_attempts if max_attempts is not None else self.config.max_attempts
        if budget < 1:
            raise ValidationError(f"max_attempts must be >= 1, got {budget}")

        if context is None:
            context = await self._build_context(question, refresh=False)

        state = RunState(question=question, max_attempts=budget, context=context)

        logger.info(
            "Starting repair loop",
            question_length=len(question),
            max_attempts=budget,
            trace_id=trace_id,
        )

        for attempt_index in range(1, budget + 1):
            self._check_cancelled(cancel_event, state)
            state.attempt_index = attempt_index

            logger.info(
                f"Query attempt {attempt_index}/{budget}",
                loop_state=state.state.value,
                trace_id=trace_id,
            )

            attempt = await self._produce_attempt(state)

            if isinstance(attempt, ParseFailure):
                result = ExecutionResult.failed(
                    FailureKind.GENERATION,
                    [generation_failure_message(attempt, self.config.call_timeout_seconds)],
                )
                logger.warning(
                    "Attempt produced no query",
                    attempt=attempt_index,
                    reason=attempt.reason.value,
                    trace_id=trace_id,
                )
            else:
                state.state = LoopState.EXECUTING
                result = await self._execute(attempt)

            state.record(attempt, result)

            if result.success:
                state.state = LoopState.SUCCEEDED
                logger.info(
                    "Query succeeded",
                    attempt=attempt_index,
                    truncated=result.truncated,
                    trace_id=trace_id,
                )
                return Succeeded(attempt=attempt, result=result, history=list(state.history))

            logger.info(
                "Query attempt failed",
                attempt=attempt_index,
                failure_kind=result.failure_kind.value,
                trace_id=trace_id,
            )

            if not state.has_budget:
                break

            state.state = LoopState.REPAIRING
            if self.config.refresh_context_on_repair and self.context_provider is not None:
                self._check_cancelled(cancel_event, state)
                state.context = await self._build_context(question, refresh=True)

        state.state = LoopState.EXHAUSTED
        last = state.last_record
        logger.warning(
            f"Query failed after {len(state.history)} attempts",
            last_failure_kind=last.result.failure_kind.value,
            trace_id=trace_id,
        )
        return Exhausted(
            last_attempt=last.attempt,
            last_result=last.result,
            attempt_count=len(state.history),
            history=list(state.history),
        )

    # =========================================================================
    # Loop steps
    # =========================================================================

    async def _build_context(self, question: str, refresh: bool) -> ContextBundle:
        if self.context_provider is None:
            raise ConfigurationError("No context given and no context provider configured")
        return await self.context_provider.build(question, refresh=refresh)

    async def _produce_attempt(self, state: RunState) -> Attempt:
        """GENERATING or REPAIRING: call the engine and parse its text."""
        previous = state.last_record
        if previous is None:
            call = self.generation_repo.generate(state.question, state.context)
        else:
            call = self.generation_repo.repair(
                state.question,
                state.context,
                previous.attempt,
                previous.result,
            )

        try:
            text = await asyncio.wait_for(call, timeout=self.config.call_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Completion call timed out",
                attempt=state.attempt_index,
                timeout_seconds=self.config.call_timeout_seconds,
                trace_id=current_trace_id(),
            )
            return ParseFailure(
                reason=ParseFailureReason.COMPLETION_TIMEOUT,
                attempt_index=state.attempt_index,
            )

        return parse_attempt(text, state.attempt_index)

    async def _execute(self, attempt: QueryAttempt) -> ExecutionResult:
        """EXECUTING: run the attempt under the per-call deadline."""
        try:
            return await asyncio.wait_for(
                self.executor.execute(attempt.query, attempt.variables),
                timeout=self.config.call_timeout_seconds,
            )
        except asyncio.TimeoutError:
            return ExecutionResult.failed(
                FailureKind.TIMEOUT,
                [f"GraphQL endpoint did not respond within {self.config.call_timeout_seconds:g}s"],
            )

    def _check_cancelled(self, cancel_event: Optional[asyncio.Event], state: RunState) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info(
                "Repair loop cancelled",
                completed_attempts=len(state.history),
                trace_id=current_trace_id(),
            )
            raise RunCancelledError(
                "Run cancelled by caller",
                details={"completed_attempts": len(state.history)},
            )
