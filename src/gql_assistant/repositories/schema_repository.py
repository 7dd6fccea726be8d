"""
Schema Repository for GraphQL introspection and diagram rendering.

Fetches __schema.types from the endpoint and renders them as a compact
mermaid erDiagram suitable for prompting.
"""

from typing import List, Optional, Tuple

from graphql import get_introspection_query

from ..domain.errors import SchemaIntrospectionError
from ..domain.types import IntrospectionType, IntrospectionTypes
from ..infrastructure.graphql_client import GraphQLClient
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id


logger = get_module_logger()

# Leaf types rendered as plain attributes rather than relationships
SCALAR_TYPE_NAMES = frozenset({
    "String",
    "Int",
    "Float",
    "Boolean",
    "ID",
    "numeric",
    "timestamptz",
    "jsonb",
    "application_status",
})

BOOL_EXP_SUFFIX = "BoolExp"
LOGICAL_OPERATORS = frozenset({"_and", "_or", "_not"})


def unwrap_type_name(type_ref: Optional[dict]) -> str:
    """Named type behind NON_NULL / LIST wrappers."""
    while type_ref:
        if type_ref.get("kind") in ("NON_NULL", "LIST"):
            type_ref = type_ref.get("ofType")
            continue
        return type_ref.get("name") or "unknown"
    return "unknown"


def is_foreign_key(field_name: str) -> bool:
    return field_name.endswith("Id") and field_name != "id"


def _is_entity(type_def: IntrospectionType) -> bool:
    name = type_def.get("name") or ""
    return (
        type_def.get("kind") == "OBJECT"
        and not name.startswith("__")
        and "Aggregate" not in name
        and "Fields" not in name
    )


def _is_list_relation(type_ref: dict) -> bool:
    of_type = type_ref.get("ofType") or {}
    return type_ref.get("kind") == "NON_NULL" and of_type.get("kind") == "LIST"


def _entity_block(type_def: IntrospectionType) -> Tuple[List[str], List[str]]:
    """Attribute lines and relationship lines for one OBJECT type."""
    name = type_def["name"]
    attributes: List[str] = []
    relationships: List[str] = []

    for field in type_def.get("fields") or []:
        field_name = field["name"]
        type_name = unwrap_type_name(field["type"])

        if is_foreign_key(field_name):
            referenced = field_name[: -len("Id")]
            # Only PascalCase prefixes name an entity
            if referenced and referenced[0].isupper():
                relationships.append(f'    {name} }}o--|| {referenced} : "belongs_to"')
            attributes.append(f"        String {field_name} FK")
        elif type_name not in SCALAR_TYPE_NAMES:
            if _is_list_relation(field["type"]):
                relationships.append(f'    {name} ||--o{{ {type_name} : "has"')
            else:
                relationships.append(f'    {name} }}o--|| {type_name} : "references"')
        else:
            suffix = " PK" if field_name == "id" else ""
            attributes.append(f"        {type_name} {field_name}{suffix}")

    return attributes, relationships


def render_er_diagram(types: IntrospectionTypes) -> str:
    """
    Render introspected types as a mermaid erDiagram.

    OBJECT types (minus introspection, aggregate and *Fields helpers) become
    entities. Scalar fields become attributes, "*Id" fields are marked FK,
    object-typed fields become relationships. Each "<X>BoolExp" input type
    adds an "<X>Filter" entity (where/orderBy/limit/offset) plus the BoolExp
    itself with its comparison fields.
    """
    entities: dict = {}
    relationships: List[str] = []

    for type_def in types:
        if _is_entity(type_def):
            attributes, entity_relationships = _entity_block(type_def)
            entities[type_def["name"]] = attributes
            relationships.extend(entity_relationships)

    for type_def in types:
        name = type_def.get("name") or ""
        if type_def.get("kind") != "INPUT_OBJECT" or not name.endswith(BOOL_EXP_SUFFIX):
            continue

        base = name[: -len(BOOL_EXP_SUFFIX)]
        filter_name = f"{base}Filter"
        if filter_name in entities:
            continue

        entities[filter_name] = [
            f"        {name} where",
            f"        {base}OrderBy orderBy",
            "        Int limit",
            "        Int offset",
        ]
        entities[name] = [
            f"        {unwrap_type_name(field['type'])} {field['name']}"
            for field in type_def.get("inputFields") or []
            if field["name"] not in LOGICAL_OPERATORS
        ]

    lines = ["erDiagram", *relationships, ""]
    for entity_name, attributes in entities.items():
        lines.append(f"    {entity_name} {{")
        lines.extend(attributes)
        lines.append("    }")
        lines.append("")

    return "\n".join(lines)


def count_entities(diagram: str) -> int:
    return sum(1 for line in diagram.splitlines() if line.rstrip().endswith("{") and line.startswith("    "))


class SchemaRepository:
    """
    Repository for GraphQL schema metadata.

    Usage:
        repo = SchemaRepository(graphql_client)
        types = await repo.fetch_types()
        diagram = render_er_diagram(types)
    """

    def __init__(self, graphql_client: GraphQLClient):
        self.graphql_client = graphql_client
        logger.info("SchemaRepository initialized")

    async def fetch_types(self) -> IntrospectionTypes:
        """
        Run the standard introspection query and return __schema.types.

        Raises:
            SchemaIntrospectionError: On non-2xx status, an errors array,
                or a body without __schema
        """
        trace_id = current_trace_id()
        logger.info("Introspecting GraphQL schema", trace_id=trace_id)

        response = await self.graphql_client.post({"query": get_introspection_query(descriptions=True)})

        if not response.is_success:
            raise SchemaIntrospectionError(
                f"Failed to introspect GraphQL schema: {response.status_code} {response.reason_phrase}",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise SchemaIntrospectionError(f"Introspection response is not JSON: {e}") from e

        if body.get("errors"):
            raise SchemaIntrospectionError(
                "GraphQL introspection errors",
                details={"errors": body["errors"]},
            )

        schema = (body.get("data") or {}).get("__schema")
        if not schema:
            raise SchemaIntrospectionError("Introspection response has no __schema")

        types = schema.get("types") or []
        logger.info("GraphQL schema introspected", type_count=len(types), trace_id=trace_id)
        return types
