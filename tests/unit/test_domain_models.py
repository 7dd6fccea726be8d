import pytest
from pydantic import ValidationError

from gql_assistant.constants import NO_CODE_COMMENTS_FALLBACK, NO_CONTEXT_SENTINEL
from gql_assistant.domain.attempts import ExecutionResult, ParseFailure
from gql_assistant.domain.base_enums import FailureKind, ParseFailureReason
from gql_assistant.domain.context import ContextBundle, KnowledgeResult, KnowledgeSnippet
from gql_assistant.domain.errors import CallTimeoutError, RunCancelledError


class TestExecutionResult:

    def test_success_and_failure_kind_are_exclusive(self):
        with pytest.raises(ValidationError):
            ExecutionResult(success=True, failure_kind=FailureKind.GRAPHQL)
        with pytest.raises(ValidationError):
            ExecutionResult(success=False)

    def test_results_are_frozen(self):
        result = ExecutionResult.ok({"rounds": []})
        with pytest.raises(ValidationError):
            result.success = False

    def test_errors_text_keeps_structured_fields(self):
        error = {"message": "Cannot query field foo", "locations": [{"line": 1, "column": 9}], "path": ["rounds"]}
        text = ExecutionResult.failed(FailureKind.GRAPHQL, [error]).errors_text()

        assert '"line": 1' in text
        assert '"path": [' in text

    def test_errors_text_joins_plain_messages(self):
        result = ExecutionResult.failed(FailureKind.TRANSPORT, ["first", "second"])
        assert result.errors_text() == "first\nsecond"


def test_parse_failure_exposes_raw_text_as_explanation():
    failure = ParseFailure(reason=ParseFailureReason.MISSING_QUERY, attempt_index=2, raw_response="no tags")
    assert failure.explanation == "no tags"
    assert failure.query == ""


def test_knowledge_result_sentinel():
    empty = KnowledgeResult.from_snippets([])
    assert empty.context == NO_CONTEXT_SENTINEL
    assert empty.is_empty

    hit = KnowledgeResult.from_snippets([KnowledgeSnippet(text="struct Round", similarity=0.734)])
    assert hit.context == "- struct Round (Similarity: 0.73)"
    assert not hit.is_empty


def test_context_bundle_knowledge_text_fallback():
    assert ContextBundle(schema_description="erDiagram").knowledge_text == NO_CODE_COMMENTS_FALLBACK


def test_exception_payloads():
    error = CallTimeoutError("no answer in 30s", details={"endpoint": "https://indexer.test"})
    assert error.http_status == 504
    assert error.to_dict() == {
        "error_code": "CALL_TIMEOUT",
        "message": "no answer in 30s",
        "details": {"endpoint": "https://indexer.test"},
    }
    assert RunCancelledError("stop").http_status == 499
