"""
Context models shared by retrieval, prompting and the repair loop.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from gql_assistant.constants import NO_CODE_COMMENTS_FALLBACK, NO_CONTEXT_SENTINEL


class KnowledgeSnippet(BaseModel):
    """A retrieved chunk with its similarity score."""

    model_config = ConfigDict(frozen=True)

    text: str
    similarity: float
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def render(self) -> str:
        return f"- {self.text} (Similarity: {self.similarity:.2f})"


class KnowledgeResult(BaseModel):
    """
    Retriever response: rendered context plus the raw hits.

    An empty search is represented by NO_CONTEXT_SENTINEL as context
    and no results.
    """

    model_config = ConfigDict(frozen=True)

    context: str
    results: List[KnowledgeSnippet] = Field(default_factory=list)

    @classmethod
    def from_snippets(cls, snippets: List[KnowledgeSnippet]) -> "KnowledgeResult":
        if not snippets:
            return cls(context=NO_CONTEXT_SENTINEL, results=[])
        return cls(context="\n".join(s.render() for s in snippets), results=snippets)

    @property
    def is_empty(self) -> bool:
        return not self.results or self.context.strip() == NO_CONTEXT_SENTINEL


class ContextBundle(BaseModel):
    """Schema description plus ordered knowledge snippets for one run."""

    model_config = ConfigDict(frozen=True)

    schema_description: str
    knowledge: List[KnowledgeSnippet] = Field(default_factory=list)

    @property
    def knowledge_text(self) -> str:
        if not self.knowledge:
            return NO_CODE_COMMENTS_FALLBACK
        return "\n".join(s.render() for s in self.knowledge)


class PromptHints(BaseModel):
    """Worked example and domain hints embedded in every generation prompt."""

    example_query: str
    example_variables: str
    hints: List[str] = Field(default_factory=list)
