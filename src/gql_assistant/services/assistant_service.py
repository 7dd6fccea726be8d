"""
Assistant Service - Main orchestrator for question answering.

This service is a THIN ORCHESTRATOR that coordinates:
1. ContextService - schema diagram + knowledge facets (concurrent)
2. RepairLoop - generate -> execute -> repair until success or budget spent
3. ResultAnalysisRepository - natural-language analysis of the final data

Every run ends in one of three reported states: succeeded (with analysis),
exhausted (with the last attempt and its errors), or failed (unexpected
fault, reported as an error message rather than raised).
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from gql_assistant.domain.attempts import Exhausted, RunOutcome, Succeeded
from gql_assistant.domain.base_enums import RunStatus
from gql_assistant.domain.errors import RunCancelledError
from gql_assistant.domain.responses import AnalysisResult, AskResponse, AttemptSummary
from gql_assistant.repositories.result_analysis import ResultAnalysisRepository
from gql_assistant.services.context_service import ContextService
from gql_assistant.services.repair_loop import RepairLoop
from gql_assistant.utils.logging import get_module_logger
from gql_assistant.utils.tracing import current_trace_id, trace_scope

logger = get_module_logger()


def summarize_attempts(outcome: Optional[RunOutcome]) -> List[AttemptSummary]:
    if outcome is None:
        return []
    return [
        AttemptSummary(
            attempt_index=record.attempt.attempt_index,
            query=record.attempt.query,
            variables=record.attempt.variables,
            explanation=record.attempt.explanation,
            success=record.result.success,
            failure_kind=record.result.failure_kind,
            errors=record.result.errors,
        )
        for record in outcome.history
    ]


class AssistantService:
    """
    Main orchestrator for the question -> query -> answer pipeline.

    Usage:
        service = AssistantService(context_service, repair_loop, analysis_repo)
        response = await service.ask("What is round 865's metadata?")
    """

    def __init__(
        self,
        context_service: ContextService,
        repair_loop: RepairLoop,
        analysis_repository: ResultAnalysisRepository,
    ):
        self.context_service = context_service
        self.repair_loop = repair_loop
        self.analysis_repo = analysis_repository

        logger.info("AssistantService initialized")

    async def ask(
        self,
        question: str,
        max_attempts: Optional[int] = None,
        analyze: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AskResponse:
        """
        Answer a question end to end.

        Args:
            question: Natural-language question
            max_attempts: Per-run override of the attempt budget
            analyze: Run the result analyzer after a successful execution
            cancel_event: Optional cancellation signal checked between attempts

        Returns:
            AskResponse with status succeeded, exhausted or failed

        Raises:
            RunCancelledError: If the caller cancelled the run
        """
        with trace_scope():
            trace_id = current_trace_id()
            start_time = datetime.now(timezone.utc)

            logger.info(
                "Starting question run",
                question_length=len(question),
                max_attempts=max_attempts,
                trace_id=trace_id,
            )

            outcome: Optional[RunOutcome] = None
            try:
                context = await self.context_service.build(question)

                outcome = await self.repair_loop.run(
                    question,
                    context=context,
                    max_attempts=max_attempts,
                    cancel_event=cancel_event,
                )

                if isinstance(outcome, Succeeded):
                    analysis = None
                    if analyze:
                        analysis = await self.analysis_repo.analyze(
                            question=question,
                            query=outcome.attempt.query,
                            variables=outcome.attempt.variables,
                            explanation=outcome.attempt.explanation,
                            data=outcome.result.data,
                        )
                    return self._build_succeeded(question, outcome, analysis, start_time)

                return self._build_exhausted(question, outcome, start_time)

            except RunCancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Question run failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    trace_id=trace_id,
                    exc_info=True,
                )
                return AskResponse(
                    trace_id=trace_id or "unknown",
                    status=RunStatus.FAILED,
                    question=question,
                    attempts=summarize_attempts(outcome),
                    error_message=str(e),
                    total_time_ms=self._elapsed_ms(start_time),
                )

    # =========================================================================
    # Response Building
    # =========================================================================

    def _elapsed_ms(self, start_time: datetime) -> float:
        return (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

    def _build_succeeded(
        self,
        question: str,
        outcome: Succeeded,
        analysis: Optional[AnalysisResult],
        start_time: datetime,
    ) -> AskResponse:
        total_time_ms = self._elapsed_ms(start_time)
        logger.info(
            "Question run succeeded",
            attempts=outcome.attempt_count,
            relevance=analysis.relevance if analysis else None,
            total_time_ms=total_time_ms,
            trace_id=current_trace_id(),
        )
        return AskResponse(
            trace_id=current_trace_id() or "unknown",
            status=RunStatus.SUCCEEDED,
            question=question,
            query=outcome.attempt.query,
            variables=outcome.attempt.variables,
            explanation=outcome.attempt.explanation,
            data=outcome.result.data,
            truncated=outcome.result.truncated,
            analysis=analysis.analysis if analysis else None,
            relevance=analysis.relevance if analysis else None,
            attempts=summarize_attempts(outcome),
            total_time_ms=total_time_ms,
        )

    def _build_exhausted(self, question: str, outcome: Exhausted, start_time: datetime) -> AskResponse:
        total_time_ms = self._elapsed_ms(start_time)
        last_error = outcome.last_result.errors_text()
        logger.warning(
            "Question run exhausted its attempts",
            attempts=outcome.attempt_count,
            total_time_ms=total_time_ms,
            trace_id=current_trace_id(),
        )
        return AskResponse(
            trace_id=current_trace_id() or "unknown",
            status=RunStatus.EXHAUSTED,
            question=question,
            query=outcome.last_attempt.query,
            variables=outcome.last_attempt.variables,
            explanation=outcome.last_attempt.explanation,
            data=outcome.last_result.data,
            attempts=summarize_attempts(outcome),
            error_message=f"Query failed after {outcome.attempt_count} attempts: {last_error}",
            total_time_ms=total_time_ms,
        )
