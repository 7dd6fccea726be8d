import httpx
import pytest

from gql_assistant.domain.errors import SchemaIntrospectionError
from gql_assistant.repositories.schema_repository import (
    SchemaRepository,
    count_entities,
    render_er_diagram,
    unwrap_type_name,
)
from gql_assistant.services.schema_service import SchemaService


def _scalar(name):
    return {"kind": "SCALAR", "name": name, "ofType": None}


def _non_null(inner):
    return {"kind": "NON_NULL", "name": None, "ofType": inner}


def _list_of(inner):
    return _non_null({"kind": "LIST", "name": None, "ofType": _non_null(inner)})


def _object(name):
    return {"kind": "OBJECT", "name": name, "ofType": None}


INTROSPECTED_TYPES = [
    {
        "kind": "OBJECT",
        "name": "Round",
        "fields": [
            {"name": "id", "type": _non_null(_scalar("String"))},
            {"name": "chainId", "type": _non_null(_scalar("Int"))},
            {"name": "roundMetadata", "type": _scalar("jsonb")},
            {"name": "ProjectId", "type": _scalar("String")},
            {"name": "applications", "type": _list_of(_object("Application"))},
        ],
    },
    {
        "kind": "OBJECT",
        "name": "Application",
        "fields": [
            {"name": "id", "type": _non_null(_scalar("String"))},
            {"name": "round", "type": _object("Round")},
        ],
    },
    {"kind": "OBJECT", "name": "RoundAggregate", "fields": []},
    {"kind": "OBJECT", "name": "__Schema", "fields": []},
    {
        "kind": "INPUT_OBJECT",
        "name": "RoundBoolExp",
        "inputFields": [
            {"name": "_and", "type": _scalar("RoundBoolExp")},
            {"name": "id", "type": _scalar("StringComparisonExp")},
        ],
    },
]


def test_unwrap_type_name():
    assert unwrap_type_name(_list_of(_object("Application"))) == "Application"
    assert unwrap_type_name(None) == "unknown"


class TestRenderDiagram:

    def test_entities_attributes_and_relationships(self):
        diagram = render_er_diagram(INTROSPECTED_TYPES)

        assert diagram.startswith("erDiagram")
        assert "        String id PK" in diagram
        assert "        jsonb roundMetadata" in diagram
        assert "        String ProjectId FK" in diagram
        assert '    Round }o--|| Project : "belongs_to"' in diagram
        assert '    Round ||--o{ Application : "has"' in diagram
        assert '    Application }o--|| Round : "references"' in diagram

    def test_helper_types_are_skipped(self):
        diagram = render_er_diagram(INTROSPECTED_TYPES)
        assert "RoundAggregate" not in diagram
        assert "__Schema" not in diagram

    def test_bool_exp_adds_filter_entity(self):
        diagram = render_er_diagram(INTROSPECTED_TYPES)

        assert "    RoundFilter {" in diagram
        assert "        RoundBoolExp where" in diagram
        assert "        StringComparisonExp id" in diagram
        assert "_and" not in diagram
        # Round, Application, RoundFilter, RoundBoolExp
        assert count_entities(diagram) == 4


def _introspection_body(types):
    return {"data": {"__schema": {"types": types}}}


class TestSchemaRepository:

    async def test_fetch_types(self, make_graphql_client):
        client, recorder = await make_graphql_client(lambda payload: httpx.Response(200, json=_introspection_body(INTROSPECTED_TYPES)))

        types = await SchemaRepository(client).fetch_types()

        assert [t["name"] for t in types][:2] == ["Round", "Application"]
        assert "__schema" in recorder.requests[0].content.decode()

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, text="internal error"),
            httpx.Response(200, json={"errors": [{"message": "introspection disabled"}]}),
            httpx.Response(200, json={"data": {}}),
            httpx.Response(200, text="not json"),
        ],
    )
    async def test_fetch_types_failures(self, make_graphql_client, response):
        client, _ = await make_graphql_client(lambda payload: response)

        with pytest.raises(SchemaIntrospectionError):
            await SchemaRepository(client).fetch_types()


class TestSchemaService:

    async def test_diagram_is_cached_until_refresh(self, make_graphql_client):
        client, recorder = await make_graphql_client(lambda payload: httpx.Response(200, json=_introspection_body(INTROSPECTED_TYPES)))
        service = SchemaService(SchemaRepository(client))

        first = await service.describe()
        second = await service.describe()

        assert first == second
        assert service.is_cached
        assert len(recorder.requests) == 1

        await service.describe(refresh=True)
        assert len(recorder.requests) == 2

        service.invalidate()
        assert not service.is_cached
