import json

import pytest

from gql_assistant.constants import TRUNCATION_SUFFIX
from gql_assistant.utils.text_utils import (
    InputValidator,
    serialize_payload,
    truncate_payload,
    truncate_words,
)


def _fifty_word_payload():
    # json.dumps of a list of n short strings splits into exactly n words
    return [f"w{i}" for i in range(50)]


def test_truncate_keeps_first_words_and_appends_marker():
    data = _fifty_word_payload()
    text = json.dumps(data)
    assert len(text.split()) == 50

    result = truncate_words(text, max_words=10)

    expected_head = " ".join(text.split()[:10])
    assert result == f"{expected_head} {TRUNCATION_SUFFIX}"
    assert len(result) <= len(expected_head) + 1 + len(TRUNCATION_SUFFIX)


def test_truncate_is_noop_on_already_truncated_text():
    once = truncate_words(json.dumps(_fifty_word_payload()), max_words=10)
    assert truncate_words(once, max_words=10) == once


def test_truncate_short_text_unchanged():
    assert truncate_words("a b c", max_words=10) == "a b c"
    assert truncate_words("", max_words=0) == ""


def test_truncate_rejects_negative_limit():
    with pytest.raises(ValueError):
        truncate_words("a b", max_words=-1)


def test_truncate_payload_returns_original_object_when_it_fits():
    data = {"rounds": [{"id": "865"}]}
    payload, truncated = truncate_payload(data, max_words=100)
    assert payload is data
    assert truncated is False


def test_truncate_payload_returns_text_when_cut():
    payload, truncated = truncate_payload(_fifty_word_payload(), max_words=10)
    assert truncated is True
    assert isinstance(payload, str)
    assert payload.endswith(TRUNCATION_SUFFIX)


def test_serialize_payload_passes_strings_through():
    assert serialize_payload("already text") == "already text"
    assert serialize_payload({"a": 1}) == '{"a": 1}'


def test_input_validator_char_limit():
    InputValidator.validate_char_limit("abc", max_chars=3)
    with pytest.raises(ValueError, match="Input too large"):
        InputValidator.validate_char_limit("abcd", max_chars=3)
