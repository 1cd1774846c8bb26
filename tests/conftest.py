"""
Pytest configuration and fixtures for seqframe tests.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from seqframe.protocol import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from seqframe.protocol import (  # noqa: E402
    ActionDispatcher,
    DualChannelSynchronizer,
    FrameStore,
    reset_metrics,
)
from seqframe.tools import (  # noqa: E402
    ExecutorRegistry,
    IntStream,
    MockPage,
    counter_executors,
    page_executors,
)


@pytest.fixture(autouse=True)
def _fresh_metrics():
    """Global protocol counters start from zero in every test."""
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def store():
    return FrameStore(start_sequence=1)


@pytest.fixture
def int_stream():
    """The integer the counter executors act on, starting at 0."""
    return IntStream()


@pytest.fixture
def page():
    return MockPage(url="https://example.test/")


@pytest.fixture
def registry(int_stream, page):
    registry = ExecutorRegistry()
    for executor in counter_executors(int_stream) + page_executors(page):
        registry.register(executor)
    return registry


@pytest.fixture
def synchronizer():
    return DualChannelSynchronizer()


@pytest.fixture
def dispatcher(store, registry):
    return ActionDispatcher(store, registry, default_scope="counter", mutation_timeout=1.0)
