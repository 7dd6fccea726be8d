"""
Query Generation Repository.

Handles LLM-based GraphQL generation and repair:
- Prompt building with schema diagram, knowledge and worked example
- Completion engine interaction

Responses are returned as raw text; parse them with
repositories.response_parsing.parse_attempt.
"""

from typing import Optional

from gql_assistant.constants import NO_EXPLANATION_PROVIDED
from gql_assistant.domain.attempts import Attempt, ExecutionResult
from gql_assistant.domain.context import ContextBundle, PromptHints
from gql_assistant.domain.protocols import CompletionEngine
from gql_assistant.utils.logging import get_module_logger
from gql_assistant.utils.tracing import current_trace_id

logger = get_module_logger()


GENERATION_SYSTEM_PROMPT = (
    "You are a GraphQL expert who writes read-only queries against a Hasura-style indexer. "
    "Always answer with <query>, <variables> and <explanation> tags."
)

REPAIR_SYSTEM_PROMPT = (
    "You are a GraphQL expert who fixes queries that failed to execute. "
    "Always answer with <query> and <variables> tags and never repeat the failed query."
)

DEFAULT_EXAMPLE_QUERY = """query getRoundForExplorer($roundId: String!, $chainId: Int!) {
  rounds(
    limit: 1
    where: {
      id: { _eq: $roundId }
      chainId: { _eq: $chainId }
      roundMetadata: { _isNull: false }
    }
  ) {
    id
    chainId
    uniqueDonorsCount
    applicationsStartTime
    applicationsEndTime
    donationsStartTime
    donationsEndTime
    matchTokenAddress
    roundMetadata
    roundMetadataCid
    applicationMetadata
    applicationMetadataCid
    strategyId
    projectId
    strategyAddress
    strategyName
    readyForPayoutTransaction
    applications(where: { status: { _eq: APPROVED } }) {
      id
      projectId
      status
      metadata
      anchorAddress
      project {
        id
        anchorAddress
      }
    }
  }
}"""

DEFAULT_EXAMPLE_VARIABLES = """{
  "roundId": "865",
  "chainId": 42161
}"""

DEFAULT_PROMPT_HINTS = PromptHints(
    example_query=DEFAULT_EXAMPLE_QUERY,
    example_variables=DEFAULT_EXAMPLE_VARIABLES,
    hints=[
        "All rounds are currently active on Arbitrum network (chainId: 42161)",
        "dApps and Apps round (roundId: 867)",
        "Web3 Infrastructure round (roundId: 865)",
        "Developer Tooling and Libraries round (roundId: 863)",
    ],
)


class QueryGenerationRepository:
    """
    Repository for LLM-based query generation and repair.

    Handles prompt construction and completion engine interaction.
    """

    def __init__(self, engine: CompletionEngine, hints: PromptHints = DEFAULT_PROMPT_HINTS):
        self.engine = engine
        self.hints = hints

    async def generate(self, question: str, context: ContextBundle) -> str:
        """Ask the engine for a first query. Returns raw completion text."""
        prompt = self.build_generation_prompt(question, context)
        logger.debug(
            "Calling LLM for query generation",
            prompt_length=len(prompt),
            trace_id=current_trace_id(),
        )
        return await self.engine.generate(prompt, system_prompt=GENERATION_SYSTEM_PROMPT)

    async def repair(
        self,
        question: str,
        context: ContextBundle,
        previous: Attempt,
        previous_result: ExecutionResult,
    ) -> str:
        """Ask the engine for a different query after a failure. Returns raw text."""
        prompt = self.build_repair_prompt(question, context, previous, previous_result)
        logger.debug(
            "Calling LLM for query repair",
            prompt_length=len(prompt),
            failed_attempt=previous.attempt_index,
            trace_id=current_trace_id(),
        )
        return await self.engine.generate(prompt, system_prompt=REPAIR_SYSTEM_PROMPT)

    # =========================================================================
    # Prompt building
    # =========================================================================

    def _hints_section(self) -> str:
        return "\n".join(f"- {hint}" for hint in self.hints.hints) or "- None"

    def _example_section(self) -> str:
        return (
            "<successful_query>\n"
            f"{self.hints.example_query}\n"
            "</successful_query>\n\n"
            "<successful_variables>\n"
            f"{self.hints.example_variables}\n"
            "</successful_variables>"
        )

    def build_generation_prompt(self, question: str, context: ContextBundle) -> str:
        """Build the prompt for the first attempt of a run."""
        return f"""You are generating a GraphQL query that answers a user's question. The query will be executed against a GraphQL server as-is.

## CONTEXT
The GraphQL schema as a mermaid diagram:

<graphql_schema>
{context.schema_description}
</graphql_schema>

Source code comments and documentation that may be relevant:

<relevant_source_code_comments>
{context.knowledge_text}
</relevant_source_code_comments>

## KNOWN-GOOD EXAMPLE
This query is known to be valid. Use the same syntax, including explicit variable definitions:

{self._example_section()}

## DOMAIN HINTS
{self._hints_section()}

## STEPS
1. Identify what information the question asks for.
2. Find the matching types, fields and relationships in the schema. Use the source code comments for extra context.
3. Write a read-only query (no mutations) that:
   - Defines every variable with its type
   - Passes all required arguments
   - Nests related types only as far as needed
   - Selects only fields relevant to the question
4. Write the variables as a JSON object matching the variable definitions.
5. If the schema cannot fully answer the question, query the most relevant information available.

## REQUIRED RESPONSE FORMAT
<query>
Your GraphQL query with variable definitions
</query>
<variables>
Your JSON variables
</variables>
<explanation>
How this query answers the question
</explanation>

## QUESTION
<question>
{question}
</question>
"""

    def build_repair_prompt(
        self,
        question: str,
        context: ContextBundle,
        previous: Attempt,
        previous_result: ExecutionResult,
        error_text: Optional[str] = None,
    ) -> str:
        """
        Build the prompt for a repair attempt.

        Carries the failed query, its variables and explanation (or the raw
        completion when parsing failed) and the serialized errors.
        """
        failed_query = previous.query or "(no query could be parsed from the previous response)"
        failed_variables = previous.variables or "{}"
        explanation = previous.explanation or NO_EXPLANATION_PROVIDED
        errors = error_text if error_text is not None else previous_result.errors_text()
        failure_kind = previous_result.failure_kind.value if previous_result.failure_kind else "unknown"

        return f"""You are fixing a GraphQL query that failed. Analyze the error, review the schema, and produce a corrected query and variables that will run successfully.

## FAILED ATTEMPT
<original_question>
{question}
</original_question>

<failed_query>
{failed_query}
</failed_query>

<failed_variables>
{failed_variables}
</failed_variables>

<query_explanation>
{explanation}
</query_explanation>

<error_message>
Failure type: {failure_kind}
{errors}
</error_message>

## KNOWN-GOOD EXAMPLE
{self._example_section()}

## DOMAIN HINTS
{self._hints_section()}

## CONTEXT
<graphql_schema>
{context.schema_description}
</graphql_schema>

<relevant_source_code_comments>
{context.knowledge_text}
</relevant_source_code_comments>

## STEPS
1. Read the error message, the schema and the failed query together.
2. Look for the usual causes:
   - Field names that do not exist in the schema
   - Missing or wrong arguments
   - Syntax errors in arguments or filters
   - Invalid nested selections
   - Variable definitions that do not match the variables JSON
   - Responses missing the required tags (when no query could be parsed)
3. Compare the failed query with the known-good example.
4. Pick the fix that addresses the error.
5. The new query MUST be different from the failed query.
6. Queries only: mutations are rejected.

## REQUIRED RESPONSE FORMAT
Do not deviate from this structure:
<query>
query ExampleQuery($exampleVar: String!) {{
  exampleField(input: $exampleVar) {{
    subField1
  }}
}}
</query>
<variables>
{{
  "exampleVar": "exampleValue"
}}
</variables>
<explanation>
What changed and why
</explanation>
"""
