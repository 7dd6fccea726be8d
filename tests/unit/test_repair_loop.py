"""
Unit tests for the repair loop state machine.

The completion engine and the query executor are scripted stubs so each
test controls exactly what every attempt produces.
"""

import asyncio
from typing import List, Optional
from unittest.mock import AsyncMock

import httpx
import pytest

from gql_assistant.config import RepairLoopConfig
from gql_assistant.constants import MUTATIONS_NOT_ALLOWED
from gql_assistant.domain.attempts import ExecutionResult, Exhausted, ParseFailure, Succeeded
from gql_assistant.domain.base_enums import FailureKind, ParseFailureReason
from gql_assistant.domain.errors import LLMError, RunCancelledError, ValidationError
from gql_assistant.repositories.query_execution import QueryExecutionRepository
from gql_assistant.repositories.query_generation import QueryGenerationRepository
from gql_assistant.services.repair_loop import RepairLoop


FOO_QUERY = "query R($roundId: String!) { rounds(where: {id: {_eq: $roundId}}) { foo } }"
FIXED_QUERY = "query R($roundId: String!) { rounds(where: {id: {_eq: $roundId}}) { roundMetadata } }"


def tagged(query: str, variables: str = '{"roundId": "865"}', explanation: str = "") -> str:
    return f"<query>{query}</query>\n<variables>{variables}</variables>\n<explanation>{explanation}</explanation>"


class ScriptedEngine:
    """Completion engine returning canned responses and recording prompts."""

    def __init__(self, responses: List[str]):
        self.responses = list(responses)
        self.prompts: List[str] = []

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        index = len(self.prompts) - 1
        if index >= len(self.responses):
            return self.responses[-1]
        return self.responses[index]


class ScriptedExecutor:
    """Query executor returning canned results and recording calls."""

    def __init__(self, results: List[ExecutionResult]):
        self.results = list(results)
        self.calls: List[tuple] = []

    async def execute(self, query: str, variables: Optional[str] = None) -> ExecutionResult:
        self.calls.append((query, variables))
        index = min(len(self.calls), len(self.results)) - 1
        return self.results[index]


def _loop(engine, executor, max_attempts=3, **config) -> RepairLoop:
    return RepairLoop(
        generation_repository=QueryGenerationRepository(engine),
        executor=executor,
        config=RepairLoopConfig(max_attempts=max_attempts, **config),
    )


FOO_FAILURE = ExecutionResult.failed(FailureKind.GRAPHQL, ["Cannot query field foo"])
ROUND_SUCCESS = ExecutionResult.ok({"rounds": [{"roundMetadata": {"name": "Web3 Infrastructure"}}]})


class TestAttemptBudget:

    @pytest.mark.parametrize("max_attempts", [1, 2, 5])
    async def test_unparseable_responses_exhaust_after_exactly_n_attempts(self, context_bundle, max_attempts):
        engine = ScriptedEngine(["I am not sure how to write this query."])
        executor = ScriptedExecutor([ROUND_SUCCESS])

        outcome = await _loop(engine, executor, max_attempts=max_attempts).run(
            "What is round 865's metadata?", context=context_bundle
        )

        assert isinstance(outcome, Exhausted)
        assert outcome.attempt_count == max_attempts
        assert len(engine.prompts) == max_attempts
        assert executor.calls == []
        assert isinstance(outcome.last_attempt, ParseFailure)
        assert outcome.last_result.failure_kind == FailureKind.GENERATION

    async def test_failing_executions_exhaust_budget(self, context_bundle):
        engine = ScriptedEngine([tagged(FOO_QUERY)])
        executor = ScriptedExecutor([FOO_FAILURE])

        outcome = await _loop(engine, executor, max_attempts=3).run("q", context=context_bundle)

        assert isinstance(outcome, Exhausted)
        assert len(executor.calls) == 3
        assert [r.attempt.attempt_index for r in outcome.history] == [1, 2, 3]
        assert outcome.last_attempt.query == FOO_QUERY
        assert outcome.last_result.errors == ["Cannot query field foo"]

    async def test_per_run_override_of_budget(self, context_bundle):
        engine = ScriptedEngine([tagged(FOO_QUERY)])
        executor = ScriptedExecutor([FOO_FAILURE])

        outcome = await _loop(engine, executor, max_attempts=5).run("q", context=context_bundle, max_attempts=2)

        assert outcome.attempt_count == 2

    async def test_zero_budget_rejected(self, context_bundle):
        loop = _loop(ScriptedEngine(["x"]), ScriptedExecutor([ROUND_SUCCESS]))
        with pytest.raises(ValidationError):
            await loop.run("q", context=context_bundle, max_attempts=0)

    def test_max_attempts_is_required(self):
        from pydantic import ValidationError as PydanticValidationError

        with pytest.raises(PydanticValidationError):
            RepairLoopConfig()


class TestRepair:

    async def test_repair_prompt_carries_failed_query_and_error(self, context_bundle):
        engine = ScriptedEngine([tagged(FOO_QUERY), tagged(FIXED_QUERY)])
        executor = ScriptedExecutor([FOO_FAILURE, ROUND_SUCCESS])

        outcome = await _loop(engine, executor).run("What is round 865's metadata?", context=context_bundle)

        assert isinstance(outcome, Succeeded)
        assert outcome.attempt.attempt_index == 2
        repair_prompt = engine.prompts[1]
        assert f"<failed_query>\n{FOO_QUERY}\n</failed_query>" in repair_prompt
        assert "Cannot query field foo" in repair_prompt
        assert "Failure type: graphql" in repair_prompt
        assert "MUST be different" in repair_prompt

    async def test_identical_repair_is_still_executed(self, context_bundle):
        engine = ScriptedEngine([tagged(FOO_QUERY), tagged(FOO_QUERY)])
        executor = ScriptedExecutor([FOO_FAILURE, ROUND_SUCCESS])

        outcome = await _loop(engine, executor).run("q", context=context_bundle)

        assert [query for query, _ in executor.calls] == [FOO_QUERY, FOO_QUERY]
        assert isinstance(outcome, Succeeded)

    async def test_unparseable_response_is_fed_back_as_evidence(self, context_bundle):
        raw = "Sorry, here you go: rounds { roundMetadata }"
        engine = ScriptedEngine([raw, tagged(FIXED_QUERY)])
        executor = ScriptedExecutor([ROUND_SUCCESS])

        outcome = await _loop(engine, executor).run("q", context=context_bundle)

        assert isinstance(outcome, Succeeded)
        assert outcome.attempt_count == 2
        assert f"<query_explanation>\n{raw}\n</query_explanation>" in engine.prompts[1]
        assert "No <query> tag was found" in engine.prompts[1]
        assert len(executor.calls) == 1

    async def test_first_success_stops_the_loop(self, context_bundle):
        engine = ScriptedEngine([tagged(FIXED_QUERY)])
        executor = ScriptedExecutor([ROUND_SUCCESS])

        outcome = await _loop(engine, executor).run("q", context=context_bundle)

        assert isinstance(outcome, Succeeded)
        assert outcome.attempt_count == 1
        assert len(engine.prompts) == 1
        assert outcome.result == ROUND_SUCCESS


class TestMutationGuard:

    async def test_mutations_rejected_on_every_attempt(self, context_bundle, make_graphql_client):
        mutation = 'mutation { deleteRound(id: "865") { id } }'
        client, recorder = await make_graphql_client(lambda payload: httpx.Response(200, json={"data": {}}))
        engine = ScriptedEngine([tagged(mutation, variables="{}")])
        executor = QueryExecutionRepository(client, client.config)

        outcome = await _loop(engine, executor, max_attempts=2).run("Delete round 865", context=context_bundle)

        assert isinstance(outcome, Exhausted)
        assert [record.result.failure_kind for record in outcome.history] == [
            FailureKind.MUTATION_REJECTED,
            FailureKind.MUTATION_REJECTED,
        ]
        assert recorder.requests == []
        assert "Failure type: mutation_rejected" in engine.prompts[1]
        assert MUTATIONS_NOT_ALLOWED in engine.prompts[1]


class TestTimeoutsAndFaults:

    async def test_completion_timeout_consumes_an_attempt(self, context_bundle):
        class SlowEngine:
            async def generate(self, prompt, system_prompt=None):
                await asyncio.sleep(5)
                return tagged(FIXED_QUERY)

        executor = ScriptedExecutor([ROUND_SUCCESS])
        loop = _loop(SlowEngine(), executor, max_attempts=2, call_timeout_seconds=0.01)

        outcome = await loop.run("q", context=context_bundle)

        assert isinstance(outcome, Exhausted)
        assert outcome.attempt_count == 2
        assert outcome.last_attempt.reason == ParseFailureReason.COMPLETION_TIMEOUT
        assert outcome.last_result.failure_kind == FailureKind.GENERATION
        assert executor.calls == []

    async def test_executor_timeout_is_timeout_failure(self, context_bundle):
        class SlowExecutor:
            async def execute(self, query, variables=None):
                await asyncio.sleep(5)
                return ROUND_SUCCESS

        loop = _loop(ScriptedEngine([tagged(FIXED_QUERY)]), SlowExecutor(), max_attempts=1, call_timeout_seconds=0.01)

        outcome = await loop.run("q", context=context_bundle)

        assert isinstance(outcome, Exhausted)
        assert outcome.last_result.failure_kind == FailureKind.TIMEOUT
        assert "did not respond within" in outcome.last_result.errors[0]

    async def test_engine_fault_propagates(self, context_bundle):
        engine = AsyncMock()
        engine.generate.side_effect = LLMError("invalid API key")

        with pytest.raises(LLMError):
            await _loop(engine, ScriptedExecutor([ROUND_SUCCESS])).run("q", context=context_bundle)


class TestCancellationAndContext:

    async def test_cancel_before_start(self, context_bundle):
        engine = ScriptedEngine([tagged(FIXED_QUERY)])
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(RunCancelledError):
            await _loop(engine, ScriptedExecutor([ROUND_SUCCESS])).run("q", context=context_bundle, cancel_event=cancel)
        assert engine.prompts == []

    async def test_cancel_between_attempts(self, context_bundle):
        cancel = asyncio.Event()

        class CancellingExecutor(ScriptedExecutor):
            async def execute(self, query, variables=None):
                cancel.set()
                return await super().execute(query, variables)

        engine = ScriptedEngine([tagged(FOO_QUERY)])
        executor = CancellingExecutor([FOO_FAILURE])

        with pytest.raises(RunCancelledError) as exc_info:
            await _loop(engine, executor).run("q", context=context_bundle, cancel_event=cancel)

        assert len(executor.calls) == 1
        assert exc_info.value.details["completed_attempts"] == 1

    async def test_context_built_once_by_default(self, context_bundle):
        provider = AsyncMock()
        provider.build.return_value = context_bundle
        loop = RepairLoop(
            generation_repository=QueryGenerationRepository(ScriptedEngine([tagged(FOO_QUERY)])),
            executor=ScriptedExecutor([FOO_FAILURE]),
            config=RepairLoopConfig(max_attempts=3),
            context_provider=provider,
        )

        await loop.run("q")

        provider.build.assert_awaited_once_with("q", refresh=False)

    async def test_context_refreshed_before_each_repair_when_enabled(self, context_bundle):
        provider = AsyncMock()
        provider.build.return_value = context_bundle
        loop = RepairLoop(
            generation_repository=QueryGenerationRepository(ScriptedEngine([tagged(FOO_QUERY)])),
            executor=ScriptedExecutor([FOO_FAILURE]),
            config=RepairLoopConfig(max_attempts=3, refresh_context_on_repair=True),
            context_provider=provider,
        )

        await loop.run("q", context=context_bundle)

        assert provider.build.await_count == 2
        provider.build.assert_awaited_with("q", refresh=True)
