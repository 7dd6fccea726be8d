"""
Text utilities for prompt-bound payloads.

Word-based truncation for GraphQL results and simple character-limit
validation for LLM and embedding inputs.
"""

import json
from typing import Any, Optional

from gql_assistant.constants import TRUNCATION_SUFFIX


def serialize_payload(data: Any) -> str:
    """
    Serialize a result payload to text for prompts and truncation.

    Strings pass through untouched so already-serialized (or already
    truncated) payloads are not quoted twice.
    """
    if isinstance(data, str):
        return data
    return json.dumps(data, ensure_ascii=False, default=str)


def truncate_words(
    text: str,
    max_words: int,
    suffix: str = TRUNCATION_SUFFIX,
) -> str:
    """
    Keep the first max_words whitespace-separated words and append suffix.

    Lossy: a truncated JSON document is no longer valid JSON. Text with at
    most max_words words is returned unchanged, as is text that was already
    truncated to at most max_words words with the same suffix.

    Example:
        >>> truncate_words("a b c d", max_words=2, suffix="[cut]")
        'a b [cut]'
        >>> truncate_words("a b", max_words=2, suffix="[cut]")
        'a b'
    """
    if max_words < 0:
        raise ValueError(f"max_words must be non-negative, got {max_words}")

    if text.endswith(suffix):
        head = text[: -len(suffix)]
        if len(head.split()) <= max_words:
            return text

    words = text.split()
    if len(words) <= max_words:
        return text

    kept = " ".join(words[:max_words])
    return f"{kept} {suffix}" if kept else suffix


def truncate_payload(data: Any, max_words: int, suffix: str = TRUNCATION_SUFFIX) -> tuple[Any, bool]:
    """
    Bound a result payload by word count.

    Returns:
        (payload, truncated). The original object is returned when it fits,
        otherwise the truncated serialized text.
    """
    text = serialize_payload(data)
    truncated = truncate_words(text, max_words, suffix)
    if truncated == text:
        return data, False
    return truncated, True


class InputValidator:
    """
    Input validation utility for checking character limits.

    Uses simple character count checks against hard limits.
    """

    @staticmethod
    def validate_char_limit(
        text: str,
        max_chars: int,
        error_message: Optional[str] = None
    ) -> None:
        """
        Validate that text does not exceed maximum character limit.

        Raises:
            ValueError: If text exceeds character limit
        """
        char_count = len(text)

        if char_count > max_chars:
            raise ValueError(
                error_message
                or f"Input too large: {char_count} characters, maximum allowed: {max_chars}"
            )

    @staticmethod
    def validate_total_chars(
        prompt: str,
        system_prompt: Optional[str] = None,
        max_chars: int = 0
    ) -> None:
        """
        Validate total character count for an LLM request.

        Raises:
            ValueError: If total exceeds character limit
        """
        total_chars = len(prompt) + len(system_prompt or "")

        if total_chars > max_chars:
            raise ValueError(
                f"Total input too large: {total_chars} characters, "
                f"maximum allowed: {max_chars}"
            )
