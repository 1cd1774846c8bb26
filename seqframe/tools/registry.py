"""
Executor Registry.

The registry is the dispatcher's capability map: it resolves an action's
tool name to an executor and tells the dispatcher whether that executor
is query-capable or mutation-capable. Payloads are never inspected to
guess intent.

Usage:
    registry = ExecutorRegistry()
    registry.register(GetCurrentValue(counter))
    registry.register(IncrementValue(counter))

    registry.kind_of("increment_value")  # ActionKind.MUTATION
    schemas = registry.to_llm_schemas()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from seqframe.protocol.actions import ActionKind
from seqframe.protocol.errors import UnknownExecutorError

from .compiler import compile_to_anthropic, compile_to_openai

if TYPE_CHECKING:
    from .base import Executor

logger = logging.getLogger(__name__)


class ExecutorRegistryError(Exception):
    """Error in executor registry operations."""

    pass


class ExecutorRegistry:
    """
    Registry of available executors, keyed by name.

    Executors are registered once at startup and not replaced while
    actions are in flight.
    """

    def __init__(self) -> None:
        self._executors: dict[str, Executor] = {}

    def register(self, executor: Executor) -> None:
        """
        Register an executor.

        Raises:
            ExecutorRegistryError: Name already taken, or executor invalid
        """
        if executor.name in self._executors:
            raise ExecutorRegistryError(
                f"Executor '{executor.name}' already registered. "
                "Use a unique name or unregister first."
            )

        self._validate_executor(executor)

        self._executors[executor.name] = executor
        logger.info(f"[executor_registry] Registered {executor.kind.value}: {executor.name}")

    def unregister(self, name: str) -> bool:
        """Unregister by name. Returns False if not found."""
        if name in self._executors:
            del self._executors[name]
            logger.info(f"[executor_registry] Unregistered executor: {name}")
            return True
        return False

    def get(self, name: str) -> Executor | None:
        return self._executors.get(name)

    def require(self, name: str) -> Executor:
        """
        Get an executor by name, raising if not found.

        Raises:
            UnknownExecutorError: If no executor has that name
        """
        executor = self._executors.get(name)
        if executor is None:
            raise UnknownExecutorError(name)
        return executor

    def kind_of(self, name: str) -> ActionKind:
        """Registered capability of an executor."""
        return self.require(name).kind

    def queries(self) -> list[Executor]:
        return [e for e in self._executors.values() if e.kind == ActionKind.QUERY]

    def mutations(self) -> list[Executor]:
        return [e for e in self._executors.values() if e.kind == ActionKind.MUTATION]

    def list_names(self) -> list[str]:
        return list(self._executors.keys())

    def to_llm_schemas(self) -> list[dict[str, Any]]:
        return [e.to_llm_schema() for e in self._executors.values()]

    def to_openai_functions(self) -> list[dict[str, Any]]:
        return [compile_to_openai(e) for e in self._executors.values()]

    def to_anthropic_tools(self) -> list[dict[str, Any]]:
        return [compile_to_anthropic(e) for e in self._executors.values()]

    def _validate_executor(self, executor: Executor) -> None:
        if not executor.name or not isinstance(executor.name, str):
            raise ExecutorRegistryError(f"Executor must have a valid name: {executor!r}")

        if not isinstance(executor.kind, ActionKind):
            raise ExecutorRegistryError(
                f"Executor '{executor.name}' kind must be an ActionKind, got {executor.kind!r}"
            )

        schema = executor.input_schema
        if not isinstance(schema, dict) or schema.get("type") != "object":
            raise ExecutorRegistryError(
                f"Executor '{executor.name}' input_schema must be a JSON Schema object"
            )

    def __len__(self) -> int:
        return len(self._executors)

    def __contains__(self, name: str) -> bool:
        return name in self._executors

    def __repr__(self) -> str:
        return f"<ExecutorRegistry executors={list(self._executors.keys())}>"
