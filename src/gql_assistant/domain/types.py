"""
Type aliases for the GraphQL query assistant.
"""

from typing import Any, Dict, List


# HTTP headers: {header_name: value}
Headers = Dict[str, str]

# Decoded JSON object (variables, response bodies)
JsonObject = Dict[str, Any]

# One entry of __schema.types from an introspection response
IntrospectionType = Dict[str, Any]

# The full __schema.types list
IntrospectionTypes = List[IntrospectionType]
