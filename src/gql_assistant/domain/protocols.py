"""
Capability interfaces the repair loop and orchestrator depend on.

Concrete implementations live in infrastructure/ and services/; tests
substitute stubs.
"""

from typing import Any, Dict, Optional, Protocol

from .attempts import ExecutionResult
from .context import ContextBundle, KnowledgeResult


class CompletionEngine(Protocol):
    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Return completion text; empty string when the model produced nothing."""
        ...


class KnowledgeRetriever(Protocol):
    async def query(self, text: str, collection: Optional[str] = None) -> KnowledgeResult:
        ...

    async def archive(self, text: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """Append text to the successful-query archive; returns the new document id."""
        ...


class SchemaDescriber(Protocol):
    async def describe(self, refresh: bool = False) -> str:
        """Compact schema representation; refresh bypasses any cache."""
        ...


class QueryExecutor(Protocol):
    async def execute(self, query: str, variables: Optional[str] = None) -> ExecutionResult:
        ...


class ContextProvider(Protocol):
    async def build(self, question: str, refresh: bool = False) -> ContextBundle:
        ...
