"""
Unit tests for ContextService.

Schema describer and knowledge retriever are AsyncMocks; facets are told
apart by the prefix of the query text.
"""

from unittest.mock import AsyncMock

import pytest

from gql_assistant.config import VectorStoreConfig
from gql_assistant.constants import (
    EVENTS_FACET_PREFIX,
    FUNCTIONS_FACET_PREFIX,
    NO_CODE_COMMENTS_FALLBACK,
    NO_CONTEXT_SENTINEL,
    STRUCTS_FACET_PREFIX,
)
from gql_assistant.domain.context import KnowledgeResult, KnowledgeSnippet
from gql_assistant.domain.errors import SchemaIntrospectionError, VectorStoreError
from gql_assistant.services.context_service import ContextService, knowledge_facets, merge_knowledge


QUESTION = "Which projects were approved in round 865?"
DIAGRAM = "erDiagram\n    Round {\n        String id\n    }"


def _snippet(text, similarity=0.8):
    return KnowledgeSnippet(text=text, similarity=similarity)


def _empty():
    return KnowledgeResult.from_snippets([])


@pytest.fixture
def vector_config():
    return VectorStoreConfig(docs_collection="docs", source_code_collection="code")


def _service(vector_config, facet_results, schema=DIAGRAM):
    """facet_results maps a facet name to a KnowledgeResult or an exception."""
    describer = AsyncMock()
    if isinstance(schema, Exception):
        describer.describe.side_effect = schema
    else:
        describer.describe.return_value = schema

    async def query(text, collection=None, k=None):
        for name, prefix in (
            ("events", EVENTS_FACET_PREFIX),
            ("structs", STRUCTS_FACET_PREFIX),
            ("functions", FUNCTIONS_FACET_PREFIX),
        ):
            if text.startswith(prefix):
                result = facet_results.get(name, _empty())
                break
        else:
            result = facet_results.get("docs", _empty())
        if isinstance(result, Exception):
            raise result
        return result

    retriever = AsyncMock()
    retriever.query.side_effect = query
    return ContextService(describer, retriever, vector_config), describer, retriever


def test_knowledge_facets_target_collections(vector_config):
    facets = knowledge_facets(QUESTION, vector_config)

    assert [name for name, _, _ in facets] == ["events", "structs", "functions", "docs"]
    assert facets[0][1] == f"{EVENTS_FACET_PREFIX}{QUESTION}"
    assert [collection for _, _, collection in facets] == ["code", "code", "code", "docs"]
    assert facets[3][1] == QUESTION


def test_merge_knowledge_drops_sentinel_and_duplicates():
    shared = _snippet("ProjectApproved(bytes32 projectId)")
    merged = merge_knowledge(
        [
            KnowledgeResult.from_snippets([shared]),
            KnowledgeResult(context=NO_CONTEXT_SENTINEL, results=[]),
            KnowledgeResult.from_snippets([shared, _snippet("struct Round")]),
        ]
    )

    assert [s.text for s in merged] == ["ProjectApproved(bytes32 projectId)", "struct Round"]


class TestContextService:

    async def test_build_combines_schema_and_facets(self, vector_config):
        service, describer, retriever = _service(
            vector_config,
            {
                "events": KnowledgeResult.from_snippets([_snippet("event ApplicationStatusUpdated")]),
                "docs": KnowledgeResult.from_snippets([_snippet("Rounds run on Arbitrum")]),
            },
        )

        bundle = await service.build(QUESTION)

        assert bundle.schema_description == DIAGRAM
        assert [s.text for s in bundle.knowledge] == ["event ApplicationStatusUpdated", "Rounds run on Arbitrum"]
        assert NO_CONTEXT_SENTINEL not in bundle.knowledge_text
        assert retriever.query.await_count == 4
        describer.describe.assert_awaited_once_with(refresh=False)

    async def test_no_hits_uses_fallback_text(self, vector_config):
        service, _, _ = _service(vector_config, {})

        bundle = await service.build(QUESTION)

        assert bundle.knowledge == []
        assert bundle.knowledge_text == NO_CODE_COMMENTS_FALLBACK

    async def test_failed_facet_is_skipped(self, vector_config):
        service, _, _ = _service(
            vector_config,
            {
                "structs": VectorStoreError("similarity search failed"),
                "functions": KnowledgeResult.from_snippets([_snippet("function allocate()")]),
            },
        )

        bundle = await service.build(QUESTION)

        assert [s.text for s in bundle.knowledge] == ["function allocate()"]

    async def test_schema_failure_propagates(self, vector_config):
        service, _, _ = _service(vector_config, {}, schema=SchemaIntrospectionError("introspection failed"))

        with pytest.raises(SchemaIntrospectionError):
            await service.build(QUESTION)

    async def test_refresh_is_passed_to_describer(self, vector_config):
        service, describer, _ = _service(vector_config, {})

        await service.build(QUESTION, refresh=True)

        describer.describe.assert_awaited_once_with(refresh=True)
