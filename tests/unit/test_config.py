import pytest
from pydantic import ValidationError

from gql_assistant.config import Settings, get_settings
from gql_assistant.config_constants import LogLevel


## test for import and loading settings
def test_get_settings():
    settings = get_settings()
    assert settings is not None
    assert settings.graphql.endpoint_url
    assert settings.loop.max_attempts >= 1
    assert settings.graphql.allow_mutations is False
    assert settings.retrieval.top_k > 0
    assert settings.app.log_level in LogLevel


## test for singleton
def test_get_settings_singleton():
    settings1 = get_settings()
    settings2 = get_settings()
    assert settings1 is settings2


def test_nested_env_overrides(monkeypatch):
    monkeypatch.setenv("LOOP__MAX_ATTEMPTS", "5")
    monkeypatch.setenv("LOOP__REFRESH_CONTEXT_ON_REPAIR", "true")
    monkeypatch.setenv("GRAPHQL__MAX_RESPONSE_WORDS", "100")

    settings = get_settings()

    assert settings.loop.max_attempts == 5
    assert settings.loop.refresh_context_on_repair is True
    assert settings.graphql.max_response_words == 100


def test_max_attempts_is_required(monkeypatch):
    monkeypatch.delenv("LOOP__MAX_ATTEMPTS", raising=False)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_max_attempts_must_be_positive(monkeypatch):
    monkeypatch.setenv("LOOP__MAX_ATTEMPTS", "0")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
