"""
Result Analysis Repository.

Turns a successful query result into a natural-language analysis with an
advisory relevance score. Analysis never invalidates a successful
execution: every failure degrades to a fixed fallback.
"""

import asyncio
import re
from typing import Any, Optional

from gql_assistant.constants import (
    ANALYSIS_FAILED_MESSAGE,
    DEFAULT_RELEVANCE,
    MAX_RELEVANCE,
    MIN_RELEVANCE,
    NO_EXPLANATION_PROVIDED,
)
from gql_assistant.domain.protocols import CompletionEngine
from gql_assistant.domain.responses import AnalysisResult
from gql_assistant.utils.logging import get_module_logger
from gql_assistant.utils.text_utils import serialize_payload
from gql_assistant.utils.tracing import current_trace_id

logger = get_module_logger()

_RELEVANCE_PATTERN = re.compile(r"Relevance score:\s*(\d+)\s*/\s*10", re.IGNORECASE)

ANALYSIS_SYSTEM_PROMPT = (
    "You are a data analyst who explains GraphQL query results to non-technical users."
)


def parse_relevance(text: Optional[str]) -> int:
    """
    Extract the "Relevance score: X/10" value, clamped to [0, 10].

    Returns DEFAULT_RELEVANCE when no score line is present.
    """
    if not text:
        return DEFAULT_RELEVANCE
    match = _RELEVANCE_PATTERN.search(text)
    if not match:
        return DEFAULT_RELEVANCE
    return min(MAX_RELEVANCE, max(MIN_RELEVANCE, int(match.group(1))))


def fallback_analysis() -> AnalysisResult:
    return AnalysisResult(analysis=ANALYSIS_FAILED_MESSAGE, relevance=0, success=False)


class ResultAnalysisRepository:
    """Repository for LLM-based result analysis."""

    def __init__(self, engine: CompletionEngine, timeout_seconds: Optional[float] = None):
        self.engine = engine
        self.timeout_seconds = timeout_seconds

    def build_analysis_prompt(
        self,
        question: str,
        query: str,
        variables: str,
        explanation: str,
        data: Any,
    ) -> str:
        return f"""Analyze the results of a GraphQL query that was run to answer a user's question.

Original question:
{question}

Query that was executed:
```graphql
{query}
```

Variables used:
```json
{variables or "{}"}
```

How the query was meant to answer the question:
{explanation or NO_EXPLANATION_PROVIDED}

Query results:
```json
{serialize_payload(data)}
```

Provide a clear, concise analysis that:
1. Directly answers the original question using the results
2. Summarizes the key information found in the data
3. Points out notable patterns, trends or outliers
4. Notes any limitations of the data (missing or truncated fields)
5. Suggests follow-up questions that might be helpful

Write plain text without XML tags and reference actual values from the data.

At the end of your analysis, on a separate line, give a relevance score from 0-10 for how well
these results answer the original question, where 0 means "not at all relevant" and 10 means
"completely answers the question". Format it as "Relevance score: X/10".
"""

    async def analyze(
        self,
        question: str,
        query: str,
        variables: str,
        explanation: str,
        data: Any,
    ) -> AnalysisResult:
        """
        Analyze a successful result.

        Never raises: engine errors, timeouts and empty completions all
        return the fallback analysis with relevance 0.
        """
        trace_id = current_trace_id()
        prompt = self.build_analysis_prompt(question, query, variables, explanation, data)

        try:
            call = self.engine.generate(prompt, system_prompt=ANALYSIS_SYSTEM_PROMPT)
            if self.timeout_seconds:
                text = await asyncio.wait_for(call, timeout=self.timeout_seconds)
            else:
                text = await call
        except asyncio.TimeoutError:
            logger.warning(
                "Result analysis timed out",
                timeout_seconds=self.timeout_seconds,
                trace_id=trace_id,
            )
            return fallback_analysis()
        except Exception as e:
            logger.error(
                "Result analysis failed",
                error=str(e),
                error_type=type(e).__name__,
                trace_id=trace_id,
            )
            return fallback_analysis()

        if not text or not text.strip():
            logger.warning("Result analysis returned no text", trace_id=trace_id)
            return fallback_analysis()

        relevance = parse_relevance(text)
        logger.info("Result analysis complete", relevance=relevance, trace_id=trace_id)
        return AnalysisResult(analysis=text, relevance=relevance, success=True)
