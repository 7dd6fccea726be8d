"""
Schema Service for orchestrating schema operations.

Introspects the GraphQL endpoint once and caches the rendered ER diagram;
schema content does not change while the process runs.
"""

import asyncio
from typing import Optional

from gql_assistant.repositories.schema_repository import (
    SchemaRepository,
    count_entities,
    render_er_diagram,
)
from gql_assistant.utils.logging import get_module_logger
from gql_assistant.utils.tracing import current_trace_id


logger = get_module_logger()


class SchemaService:
    """
    Schema Describer backed by GraphQL introspection.

    Usage:
        schema_service = SchemaService(schema_repo)
        diagram = await schema_service.describe()
    """

    def __init__(self, schema_repository: SchemaRepository):
        self.schema_repo = schema_repository

        # Cache for the rendered diagram
        self._diagram: Optional[str] = None
        self._lock = asyncio.Lock()

        logger.info("SchemaService initialized")

    async def describe(self, refresh: bool = False) -> str:
        """
        Return the mermaid ER diagram of the schema.

        Args:
            refresh: Re-run introspection even if a diagram is cached

        Raises:
            SchemaIntrospectionError: If introspection fails
        """
        async with self._lock:
            if self._diagram is not None and not refresh:
                return self._diagram

            trace_id = current_trace_id()
            types = await self.schema_repo.fetch_types()
            diagram = render_er_diagram(types)

            logger.info(
                "Schema diagram rendered",
                entity_count=count_entities(diagram),
                diagram_length=len(diagram),
                refreshed=refresh,
                trace_id=trace_id,
            )
            self._diagram = diagram
            return diagram

    @property
    def is_cached(self) -> bool:
        return self._diagram is not None

    def invalidate(self) -> None:
        self._diagram = None
