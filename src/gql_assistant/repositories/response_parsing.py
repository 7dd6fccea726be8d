"""
Parsing of tagged completion output.

The generation and repair prompts ask for <query>, <variables> and
<explanation> tags. This module is the only place that knows about that
contract, so a structured-output mode can replace it without touching
the repair loop.
"""

import re
from typing import Optional, Union

from gql_assistant.domain.attempts import ParseFailure, QueryAttempt
from gql_assistant.domain.base_enums import ParseFailureReason

_QUERY_PATTERN = re.compile(r"<query>([\s\S]*?)</query>")
_VARIABLES_PATTERN = re.compile(r"<variables>([\s\S]*?)</variables>")
_EXPLANATION_PATTERN = re.compile(r"<explanation>([\s\S]*?)</explanation>")

DEFAULT_VARIABLES = "{}"


def _first_match(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(1).strip() if match else None


def parse_attempt(text: Optional[str], attempt_index: int) -> Union[QueryAttempt, ParseFailure]:
    """
    Extract a QueryAttempt from completion text.

    A missing tag yields its default ("" for query and explanation, "{}"
    for variables). An empty query means generation failed: a ParseFailure
    carrying the raw text is returned instead.
    """
    raw = text or ""
    if not raw.strip():
        return ParseFailure(
            reason=ParseFailureReason.EMPTY_RESPONSE,
            attempt_index=attempt_index,
            raw_response=raw,
        )

    query = _first_match(_QUERY_PATTERN, raw) or ""
    if not query:
        return ParseFailure(
            reason=ParseFailureReason.MISSING_QUERY,
            attempt_index=attempt_index,
            raw_response=raw,
        )

    variables = _first_match(_VARIABLES_PATTERN, raw)
    explanation = _first_match(_EXPLANATION_PATTERN, raw)

    return QueryAttempt(
        query=query,
        variables=variables if variables else DEFAULT_VARIABLES,
        explanation=explanation or "",
        attempt_index=attempt_index,
        raw_response=raw,
    )
