"""
HTTP client for the GraphQL endpoint.

This module provides a minimal async client that POSTs GraphQL payloads
with the configured auth headers. Response interpretation (errors arrays,
truncation) lives in the repositories.
"""

from typing import Any, Dict, Optional

import httpx

from ..config import GraphQLConfig
from ..domain.errors import CallTimeoutError, GraphQLTransportError, ServiceUnavailableError
from ..domain.types import Headers, JsonObject
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id


logger = get_module_logger()

_HEALTH_QUERY = "query { __typename }"


class GraphQLClient:
    """
    Thin async GraphQL-over-HTTP client built on httpx.AsyncClient.

    Default headers (Content-Type, bearer token, configured extras) are set
    once on the underlying client; per-call headers are merged on top.

    Usage:
        client = GraphQLClient(config)
        await client.connect()
        response = await client.post({"query": "{ rounds(limit: 1) { id } }"})
        await client.close()
    """

    def __init__(
        self,
        config: GraphQLConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: GraphQL endpoint configuration
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._is_connected = False

        logger.info(
            "GraphQLClient initialized",
            endpoint_url=config.endpoint_url,
            has_api_token=bool(config.api_token),
            allow_mutations=config.allow_mutations
        )

    def default_headers(self) -> Headers:
        """Headers sent with every request."""
        headers: Headers = {"Content-Type": "application/json"}
        if self.config.api_token:
            headers["Authorization"] = f"Bearer {self.config.api_token}"
        headers.update(self.config.default_headers)
        return headers

    async def connect(self) -> None:
        """
        Create the pooled HTTP client.

        No request is made; GraphQL endpoints commonly reject bare GETs.
        Use health_check() to probe the endpoint.
        """
        if self._is_connected:
            logger.warning("GraphQL client already connected")
            return

        self._client = httpx.AsyncClient(
            headers=self.default_headers(),
            timeout=httpx.Timeout(
                self.config.timeout_seconds,
                connect=self.config.connect_timeout_seconds
            ),
            limits=httpx.Limits(
                max_connections=self.config.max_connections,
                max_keepalive_connections=self.config.max_keepalive_connections
            ),
            transport=self._transport
        )
        self._is_connected = True
        logger.info("GraphQL client initialized successfully", trace_id=current_trace_id())

    async def close(self) -> None:
        """Close HTTP client and release resources."""
        if self._client:
            await self._client.aclose()

        self._is_connected = False
        self._client = None
        logger.info("GraphQL client closed", trace_id=current_trace_id())

    def is_connected(self) -> bool:
        """Check if GraphQL client is connected."""
        return self._is_connected and self._client is not None

    async def post(
        self,
        payload: JsonObject,
        headers: Optional[Headers] = None,
        endpoint: Optional[str] = None,
    ) -> httpx.Response:
        """
        POST a GraphQL payload and return the raw response.

        Non-2xx responses are returned, not raised; callers decide how to
        report them.

        Raises:
            ServiceUnavailableError: If the client is not connected
            CallTimeoutError: If the endpoint does not answer in time
            GraphQLTransportError: On any other network failure
        """
        if not self.is_connected() or self._client is None:
            raise ServiceUnavailableError("GraphQL client is not connected")

        url = endpoint or self.config.endpoint_url
        trace_id = current_trace_id()

        try:
            response = await self._client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            error_msg = f"GraphQL endpoint did not respond within {self.config.timeout_seconds}s"
            logger.warning(error_msg, endpoint=url, error_type=type(e).__name__, trace_id=trace_id)
            raise CallTimeoutError(error_msg, details={"endpoint": url}) from e
        except httpx.HTTPError as e:
            error_msg = f"GraphQL request failed: {e}"
            logger.warning(error_msg, endpoint=url, error_type=type(e).__name__, trace_id=trace_id)
            raise GraphQLTransportError(error_msg, details={"endpoint": url}) from e

        logger.debug(
            "GraphQL request completed",
            endpoint=url,
            status_code=response.status_code,
            trace_id=trace_id
        )
        return response

    async def health_check(self) -> Dict[str, Any]:
        """
        Probe the endpoint with a __typename query.

        Returns:
            {"status": "healthy" | "unhealthy", "connected": bool, ...}
        """
        if not self.is_connected():
            return {
                "status": "unhealthy",
                "connected": False,
                "error": "GraphQL client not connected"
            }

        try:
            response = await self.post({"query": _HEALTH_QUERY})
            if response.status_code != 200:
                return {
                    "status": "unhealthy",
                    "connected": True,
                    "error": f"Unexpected status code: {response.status_code}"
                }
            return {
                "status": "healthy",
                "connected": True,
                "endpoint_url": self.config.endpoint_url
            }

        except (CallTimeoutError, GraphQLTransportError) as e:
            return {
                "status": "unhealthy",
                "connected": True,
                "error": e.message
            }
