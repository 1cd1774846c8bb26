"""
seqframe executors.

Executors are the opaque tools the dispatcher runs. The registry maps
each executor name to its capability (query or mutation).
"""

from .base import EMPTY_SCHEMA, Executor, FunctionExecutor
from .compiler import compile_to_anthropic, compile_to_openai, validate_executor
from .counter import AccumulateValue, GetCurrentValue, IncrementValue, IntStream, counter_executors
from .page import ClickElement, GetClickableElements, MockPage, PageElement, page_executors
from .registry import ExecutorRegistry, ExecutorRegistryError

__all__ = [
    # Base
    "Executor",
    "FunctionExecutor",
    "EMPTY_SCHEMA",
    # Registry
    "ExecutorRegistry",
    "ExecutorRegistryError",
    # Compilation
    "compile_to_openai",
    "compile_to_anthropic",
    "validate_executor",
    # Integer stream
    "IntStream",
    "GetCurrentValue",
    "IncrementValue",
    "AccumulateValue",
    "counter_executors",
    # Mock page
    "MockPage",
    "PageElement",
    "GetClickableElements",
    "ClickElement",
    "page_executors",
]
