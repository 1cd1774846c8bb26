"""
Compile executors into LLM function-calling formats.

Every compiled schema carries ``basedOnSequence``: a model can only call
a tool by stating which frame it last observed.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .base import Executor

SEQUENCE_PARAMETER = "basedOnSequence"
JSON_SCHEMA_DIALECT = "https://json-schema.org/draft/2020-12/schema"


def with_sequence_parameter(schema: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``schema`` with the required basedOnSequence number added."""
    result = copy.deepcopy(schema)
    result.setdefault("type", "object")
    properties = result.setdefault("properties", {})
    properties[SEQUENCE_PARAMETER] = {
        "type": "number",
        "description": "Sequence number of the last frame you observed",
    }
    required = list(result.get("required", []))
    if SEQUENCE_PARAMETER not in required:
        required.append(SEQUENCE_PARAMETER)
    result["required"] = required
    return result


def compile_to_openai(executor: Executor) -> dict[str, Any]:
    """OpenAI function definition for an executor."""
    return {
        "name": executor.name,
        "description": executor.description,
        "parameters": with_sequence_parameter(executor.input_schema),
    }


def compile_to_anthropic(executor: Executor) -> dict[str, Any]:
    """Anthropic tool definition for an executor."""
    schema = with_sequence_parameter(executor.input_schema)
    return {
        "name": executor.name,
        "description": executor.description,
        "input_schema": {"$schema": JSON_SCHEMA_DIALECT, **schema},
    }


def validate_executor(executor: Executor) -> bool:
    """
    Check an executor compiles to both formats with every input handled.

    Returns False instead of raising, for use in registration checks.
    """
    if not executor.name or not executor.description:
        return False
    try:
        openai = compile_to_openai(executor)
        anthropic = compile_to_anthropic(executor)
    except (TypeError, AttributeError):
        return False

    declared = set(executor.input_schema.get("properties", {}))
    return declared <= set(openai["parameters"]["properties"]) and declared <= set(
        anthropic["input_schema"]["properties"]
    )
