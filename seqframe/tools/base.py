"""
Executor Base Classes.

Executors are the opaque tool implementations the dispatcher invokes:
clicking a DOM element, reading a counter, rendering an image. They do
not know about sequence numbers or frames; the dispatcher anchors,
serializes and encodes around them.

Contract:
    - name: Unique identifier (snake_case)
    - kind: ActionKind.QUERY or ActionKind.MUTATION (the capability)
    - description: What the executor does, for LLM tool selection
    - input_schema: JSON Schema of the payload (basedOnSequence is added
      by the compiler, executors never declare it)
    - execute: Async method returning an Observation

Failures:
    Raise ExecutorFailure (optionally with a snapshot of the state after
    the failure). Any other exception is treated the same way, with no
    snapshot.

Streaming executors call ``await ctx.checkpoint()`` between discrete
steps so that pause and cancellation take effect, and may report
progress with ``ctx.report_progress()``.

Usage:
    class ReadTitle(Executor):
        name = "read_title"
        kind = ActionKind.QUERY
        description = "Read the page title"

        async def execute(self, payload, ctx):
            return Observation(content=page.title)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from seqframe.protocol.actions import ActionKind, Observation

if TYPE_CHECKING:
    from seqframe.protocol.state import ExecutionContext


EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}, "required": []}


class Executor(ABC):
    """Base class for everything the dispatcher can run."""

    name: str = ""
    kind: ActionKind = ActionKind.QUERY
    description: str = ""

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the payload. Override for executors that take input."""
        return EMPTY_SCHEMA

    @property
    def is_query(self) -> bool:
        return self.kind == ActionKind.QUERY

    @abstractmethod
    async def execute(self, payload: dict[str, Any], ctx: ExecutionContext) -> Observation:
        """
        Run the action.

        Args:
            payload: Action payload (matches input_schema)
            ctx: Fixed sequence, scope key and stream controls

        Returns:
            Observation of the state after the action

        Raises:
            ExecutorFailure: The action failed
        """
        ...

    def to_llm_schema(self) -> dict[str, Any]:
        """Schema with the protocol's anchoring parameter, for tool calling."""
        from .compiler import with_sequence_parameter

        return {
            "name": self.name,
            "description": self.description,
            "kind": self.kind.value,
            "input_schema": with_sequence_parameter(self.input_schema),
        }

    def __repr__(self) -> str:
        return f"<Executor {self.name} ({self.kind.value})>"


ExecuteFn = Callable[[dict[str, Any], "ExecutionContext"], Awaitable[Observation]]


class FunctionExecutor(Executor):
    """
    Executor backed by a plain async function.

    Example:
        async def read(payload, ctx):
            return Observation(content="ok")

        registry.register(FunctionExecutor("read", ActionKind.QUERY, read))
    """

    def __init__(
        self,
        name: str,
        kind: ActionKind,
        fn: ExecuteFn,
        description: str = "",
        input_schema: dict[str, Any] | None = None,
    ):
        self.name = name
        self.kind = kind
        self.description = description or f"{kind.value} {name}"
        self._fn = fn
        self._input_schema = input_schema or EMPTY_SCHEMA

    @property
    def input_schema(self) -> dict[str, Any]:
        return self._input_schema

    async def execute(self, payload: dict[str, Any], ctx: ExecutionContext) -> Observation:
        return await self._fn(payload, ctx)
