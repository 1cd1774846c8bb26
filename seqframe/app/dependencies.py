"""
Dependency Injection for seqframe.

Provides singleton instances of the protocol components. The HTTP app
wires one frame store, one dispatcher and one session manager, with the
integer-stream and mock-page executors registered.
"""

from __future__ import annotations

import logging
from typing import Any

from seqframe.config import ProtocolSettings, get_settings
from seqframe.protocol import (
    ActionDispatcher,
    DualChannelSynchronizer,
    FrameStore,
    ProtocolLogger,
    RecoveryPlan,
    RecoveryStrategy,
    SessionSyncManager,
)
from seqframe.tools import ExecutorRegistry, IntStream, MockPage, counter_executors, page_executors

logger = logging.getLogger(__name__)


class Services:
    """The protocol components behind one running app."""

    def __init__(self, settings: ProtocolSettings):
        self.settings = settings
        self.plog = ProtocolLogger()

        self.stream = IntStream()
        self.page = MockPage()
        self.registry = ExecutorRegistry()
        for executor in counter_executors(self.stream) + page_executors(self.page):
            self.registry.register(executor)

        self.store = FrameStore(
            start_sequence=settings.start_sequence,
            history_limit=settings.history_limit,
        )
        self.synchronizer = DualChannelSynchronizer()
        self.dispatcher = ActionDispatcher.from_settings(
            settings,
            self.store,
            self.registry,
            synchronizer=self.synchronizer,
            plog=self.plog,
        )
        self.sessions = SessionSyncManager(
            small_gap_threshold=settings.small_gap_threshold,
            max_unacked=settings.max_unacked,
            snapshot_provider=self.snapshot,
        )
        self.sessions.add_listener(self.on_recovery)

    def snapshot(self) -> dict[str, Any]:
        """Current full state: the latest full_page frame of every scope."""
        frames = [self.store.latest_full_frame(scope) for scope in self.store.scopes()]
        return {
            "head": self.store.head,
            "frames": [f.to_dict() for f in frames if f is not None],
        }

    def on_recovery(self, plan: RecoveryPlan) -> None:
        """A performed snapshot or reset supersedes the history before it."""
        self.plog.recovery_selected(plan)
        if plan.applied and plan.strategy in (RecoveryStrategy.SNAPSHOT, RecoveryStrategy.RESET):
            self.store.compact()


# Global instance (initialized on first access)
_services: Services | None = None


def get_services() -> Services:
    """
    Get the protocol services.

    Creates them on first call.
    """
    global _services
    if _services is None:
        _services = Services(get_settings())
        logger.info(
            f"[services] Initialized: head={_services.store.head}, "
            f"executors={_services.registry.list_names()}"
        )
    return _services


def get_dispatcher() -> ActionDispatcher:
    return get_services().dispatcher


def get_store() -> FrameStore:
    return get_services().store


def get_synchronizer() -> DualChannelSynchronizer:
    return get_services().synchronizer


def get_sessions() -> SessionSyncManager:
    return get_services().sessions


def get_registry() -> ExecutorRegistry:
    return get_services().registry


async def initialize_services() -> None:
    """
    Initialize all services on application startup.

    Called from FastAPI lifespan.
    """
    get_services()


async def shutdown_services() -> None:
    """
    Drop all services on application shutdown.

    Called from FastAPI lifespan.
    """
    global _services
    _services = None
