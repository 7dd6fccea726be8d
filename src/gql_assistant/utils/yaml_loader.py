"""
Loader for prompt hint YAML files.

A hints file carries the worked example and the domain hints that are
embedded in every generation and repair prompt:

    example_query: |
      query getRoundForExplorer($roundId: String!, $chainId: Int!) { ... }
    example_variables: |
      {"roundId": "865", "chainId": 42161}
    hints:
      - All rounds are currently active on Arbitrum network (chainId: 42161)
      - Web3 Infrastructure round (roundId: 865)
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..domain.context import PromptHints
from ..domain.errors import ConfigurationError
from .logging import get_module_logger


logger = get_module_logger()


def load_yaml_file(path: str) -> Dict[str, Any]:
    """
    Read and parse a YAML mapping from disk.

    Raises:
        ConfigurationError: If the file is missing, unreadable, or not a mapping
    """
    file_path = Path(path)
    try:
        content = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read YAML file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(content, dict):
        raise ConfigurationError(f"YAML file {path} must contain a mapping")
    return content


def load_prompt_hints(path: Optional[str], defaults: PromptHints) -> PromptHints:
    """
    Load prompt hints from path, falling back to defaults when path is None.

    Keys missing from the file keep their default values. example_variables
    may be given as a mapping instead of JSON text.
    """
    if not path:
        return defaults

    content = load_yaml_file(path)

    variables = content.get("example_variables")
    if isinstance(variables, dict):
        content["example_variables"] = json.dumps(variables, indent=2)

    merged = {**defaults.model_dump(), **content}
    try:
        hints = PromptHints.model_validate(merged)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid prompt hints in {path}: {e}") from e

    logger.info("Prompt hints loaded", path=path, hint_count=len(hints.hints))
    return hints
