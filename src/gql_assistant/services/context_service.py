"""
Context Service - gathers the prompt context for one question.

Runs the schema describer and the knowledge facets concurrently:
- Events / structs / functions from the contract source code collection
- General protocol documentation

A failed knowledge facet is dropped with a warning (retrieval is advisory);
a failed schema introspection propagates because no query can be written
without it.
"""

import asyncio
from typing import List, Tuple

from gql_assistant.config import VectorStoreConfig
from gql_assistant.constants import (
    EVENTS_FACET_PREFIX,
    FUNCTIONS_FACET_PREFIX,
    STRUCTS_FACET_PREFIX,
)
from gql_assistant.domain.context import ContextBundle, KnowledgeResult, KnowledgeSnippet
from gql_assistant.domain.protocols import KnowledgeRetriever, SchemaDescriber
from gql_assistant.utils.logging import get_module_logger
from gql_assistant.utils.tracing import current_trace_id

logger = get_module_logger()


def knowledge_facets(question: str, config: VectorStoreConfig) -> List[Tuple[str, str, str]]:
    """(facet name, query text, collection) for every retrieval issued per question."""
    return [
        ("events", f"{EVENTS_FACET_PREFIX}{question}", config.source_code_collection),
        ("structs", f"{STRUCTS_FACET_PREFIX}{question}", config.source_code_collection),
        ("functions", f"{FUNCTIONS_FACET_PREFIX}{question}", config.source_code_collection),
        ("docs", question, config.docs_collection),
    ]


def merge_knowledge(results: List[KnowledgeResult]) -> List[KnowledgeSnippet]:
    """
    Concatenate facet hits in facet order.

    Empty results (the sentinel) contribute nothing; a chunk returned by
    more than one facet is kept once.
    """
    seen = set()
    merged: List[KnowledgeSnippet] = []
    for result in results:
        if result.is_empty:
            continue
        for snippet in result.results:
            if snippet.text in seen:
                continue
            seen.add(snippet.text)
            merged.append(snippet)
    return merged


class ContextService:
    """Builds a ContextBundle from the schema describer and knowledge retriever."""

    def __init__(
        self,
        schema_describer: SchemaDescriber,
        knowledge_retriever: KnowledgeRetriever,
        vector_store_config: VectorStoreConfig,
    ):
        self.schema = schema_describer
        self.knowledge = knowledge_retriever
        self.config = vector_store_config

    async def build(self, question: str, refresh: bool = False) -> ContextBundle:
        """
        Gather schema and knowledge for a question.

        Args:
            question: Natural-language question
            refresh: Re-introspect the schema instead of using a cached diagram

        Raises:
            SchemaIntrospectionError: If the schema cannot be described
        """
        trace_id = current_trace_id()
        facets = knowledge_facets(question, self.config)

        logger.info(
            "Gathering context",
            facet_count=len(facets),
            refresh=refresh,
            trace_id=trace_id,
        )

        schema_description, *facet_results = await asyncio.gather(
            self.schema.describe(refresh=refresh),
            *(self.knowledge.query(text, collection=collection) for _, text, collection in facets),
            return_exceptions=True,
        )

        if isinstance(schema_description, BaseException):
            raise schema_description

        usable: List[KnowledgeResult] = []
        for (name, _, collection), result in zip(facets, facet_results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                logger.warning(
                    "Knowledge facet failed, continuing without it",
                    facet=name,
                    collection=collection,
                    error=str(result),
                    error_type=type(result).__name__,
                    trace_id=trace_id,
                )
                continue
            usable.append(result)

        knowledge = merge_knowledge(usable)

        logger.info(
            "Context gathered",
            schema_length=len(schema_description),
            snippet_count=len(knowledge),
            trace_id=trace_id,
        )
        return ContextBundle(schema_description=schema_description, knowledge=knowledge)
