from typing import Literal


LOG_LEVELS = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Returned by the knowledge retriever when a search has no hits.
# Callers strip it before building prompts.
NO_CONTEXT_SENTINEL = "No relevant context found in the vector database."
NO_CODE_COMMENTS_FALLBACK = "No relevant source code comments found."

TRUNCATION_SUFFIX = "... [content truncated due to size limits]"

MUTATIONS_NOT_ALLOWED = "Mutations are not allowed unless enabled in configuration"

ANALYSIS_FAILED_MESSAGE = "Failed to analyze the query results."
NO_EXPLANATION_PROVIDED = "No explanation provided."
DEFAULT_RELEVANCE = 5
MIN_RELEVANCE = 0
MAX_RELEVANCE = 10

# Prefixes for the source-code retrieval facets
EVENTS_FACET_PREFIX = "Events with @param or @notice similar to: "
STRUCTS_FACET_PREFIX = "Structs with @param or @notice similar to: "
FUNCTIONS_FACET_PREFIX = "Functions with @param or @notice similar to: "

APP_NAME = "GraphQL Query Assistant"
APP_VERSION = "0.1.0"
