from gql_assistant.domain.attempts import ParseFailure, QueryAttempt
from gql_assistant.domain.base_enums import ParseFailureReason
from gql_assistant.repositories.response_parsing import parse_attempt


TAGGED_RESPONSE = """Here is the query.
<query>
query getRound($roundId: String!) {
  rounds(where: { id: { _eq: $roundId } }) { roundMetadata }
}
</query>
<variables>
{"roundId": "865"}
</variables>
<explanation>
Fetches the metadata of round 865.
</explanation>
"""


def test_parse_extracts_all_tags_trimmed():
    attempt = parse_attempt(TAGGED_RESPONSE, attempt_index=1)

    assert isinstance(attempt, QueryAttempt)
    assert attempt.query.startswith("query getRound")
    assert attempt.query.endswith("}")
    assert attempt.variables == '{"roundId": "865"}'
    assert attempt.explanation == "Fetches the metadata of round 865."
    assert attempt.attempt_index == 1
    assert attempt.raw_response == TAGGED_RESPONSE


def test_missing_variables_default_to_empty_object():
    attempt = parse_attempt("<query>{ rounds { id } }</query>", attempt_index=2)
    assert isinstance(attempt, QueryAttempt)
    assert attempt.variables == "{}"
    assert attempt.explanation == ""


def test_first_match_wins():
    text = "<query>query A { a }</query> then <query>query B { b }</query>"
    attempt = parse_attempt(text, attempt_index=1)
    assert attempt.query == "query A { a }"


def test_missing_query_is_a_parse_failure_with_raw_text():
    text = "I could not find a suitable field, sorry."
    result = parse_attempt(text, attempt_index=3)

    assert isinstance(result, ParseFailure)
    assert result.reason == ParseFailureReason.MISSING_QUERY
    assert result.attempt_index == 3
    assert result.explanation == text
    assert result.query == ""


def test_empty_query_tag_is_a_parse_failure():
    result = parse_attempt("<query>   </query><variables>{}</variables>", attempt_index=1)
    assert isinstance(result, ParseFailure)
    assert result.reason == ParseFailureReason.MISSING_QUERY


def test_empty_or_none_text_is_empty_response():
    for text in (None, "", "   \n"):
        result = parse_attempt(text, attempt_index=1)
        assert isinstance(result, ParseFailure)
        assert result.reason == ParseFailureReason.EMPTY_RESPONSE
