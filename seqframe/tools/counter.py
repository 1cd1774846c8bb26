"""
Integer stream executors.

A minimal stateful resource: one integer, read by a query and changed by
mutations. Used by the HTTP app's default wiring and throughout the tests.

    get_current_value  (query)     -> "Value is 5"
    increment_value    (mutation)  -> "Value is now 6"
    accumulate_value   (mutation, streaming) adds 1 per step, applied at the end
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from seqframe.protocol.actions import ActionKind, Observation
from seqframe.protocol.errors import ExecutorFailure

from .base import Executor

if TYPE_CHECKING:
    from seqframe.protocol.state import ExecutionContext


@dataclass
class IntStream:
    """The external state the counter executors act on."""

    value: int = 0

    def describe(self) -> str:
        return f"Value is {self.value}"


class GetCurrentValue(Executor):
    name = "get_current_value"
    kind = ActionKind.QUERY
    description = "Get current value of the integer stream"

    def __init__(self, stream: IntStream):
        self.stream = stream

    async def execute(self, payload: dict[str, Any], ctx: ExecutionContext) -> Observation:
        return Observation(content=self.stream.describe(), data={"value": self.stream.value})


class IncrementValue(Executor):
    name = "increment_value"
    kind = ActionKind.MUTATION
    description = "Increment the integer stream by a specified amount"

    def __init__(self, stream: IntStream):
        self.stream = stream

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "amount": {"type": "number", "description": "Amount to add"},
            },
            "required": ["amount"],
        }

    async def execute(self, payload: dict[str, Any], ctx: ExecutionContext) -> Observation:
        amount = payload.get("amount")
        if isinstance(amount, bool) or not isinstance(amount, int | float):
            raise ExecutorFailure(
                f"amount must be a number, got {amount!r}",
                snapshot=self.stream.describe(),
            )
        self.stream.value += int(amount)
        return Observation(
            content=f"Value is now {self.stream.value}",
            data={"value": self.stream.value},
        )


class AccumulateValue(Executor):
    """
    Streaming mutation: counts up one step at a time.

    Steps are staged and only applied after the last checkpoint, so a
    cancellation never leaves the stream half-incremented.
    """

    name = "accumulate_value"
    kind = ActionKind.MUTATION
    description = "Add 1 to the integer stream per step, reporting progress after each step"

    def __init__(self, stream: IntStream, step_delay: float = 0.0):
        self.stream = stream
        self.step_delay = step_delay

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "steps": {"type": "number", "description": "Number of steps"},
            },
            "required": ["steps"],
        }

    async def execute(self, payload: dict[str, Any], ctx: ExecutionContext) -> Observation:
        steps = int(payload.get("steps", 1))
        staged = 0
        for step in range(steps):
            await ctx.checkpoint()
            if self.step_delay:
                await asyncio.sleep(self.step_delay)
            staged += 1
            ctx.report_progress(100.0 * (step + 1) / steps, f"step {step + 1}/{steps}")

        await ctx.checkpoint()
        self.stream.value += staged
        return Observation(
            content=f"Value is now {self.stream.value}",
            data={"value": self.stream.value, "steps": staged},
        )


def counter_executors(stream: IntStream, step_delay: float = 0.0) -> list[Executor]:
    return [
        GetCurrentValue(stream),
        IncrementValue(stream),
        AccumulateValue(stream, step_delay=step_delay),
    ]
