"""
Frame Store.

Owns the protocol's sequence counter and the append-only frame history.
It is the only component that assigns sequence numbers.

Guarantees:
- Committed sequence numbers increase by exactly 1 and are never reused
- A commit anchored on anything but the current head fails with no change
- A diff is only accepted if its base is the latest full_page frame of its scope
- The latest full_page frame of every scope survives history trimming, so
  diff bases always resolve

Example:
    store = FrameStore(start_sequence=1)
    frame = store.append("counter", FullPage(content="Value is now 5"), based_on_sequence=1)
    assert frame.sequence == 2
    assert store.is_current(2)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from typing import Any

from .errors import InvalidDiffError, StaleSequenceError
from .frames import Changes, Diff, ErrorChanges, Frame, FullPage

logger = logging.getLogger(__name__)


class FrameStore:
    """
    Sequence counter plus frame history.

    History holds committed frames (which advance the head) and error
    frames recorded for failed actions (stamped with the unchanged head).
    Query frames are built with ``observe()`` and never stored.
    """

    def __init__(self, start_sequence: int = 1, history_limit: int | None = None):
        """
        Args:
            start_sequence: Head sequence of a fresh store (nothing committed yet)
            history_limit: Maximum frames kept; None keeps everything
        """
        if history_limit is not None and history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        self._start_sequence = start_sequence
        self._history_limit = history_limit
        self._head = start_sequence
        self._history: list[Frame] = []
        self._committed: dict[int, Frame] = {}
        self._latest_full: dict[str, Frame] = {}
        self._lock = threading.Lock()

    @property
    def head(self) -> int:
        """Sequence of the most recent committed frame (or the start sequence)."""
        return self._head

    @property
    def history_limit(self) -> int | None:
        return self._history_limit

    def is_current(self, sequence: int) -> bool:
        """True iff ``sequence`` is the current head."""
        return sequence == self._head

    # =========================================================================
    # Writes
    # =========================================================================

    def append(
        self,
        scope_key: str,
        changes: Changes,
        based_on_sequence: int,
        **metadata: Any,
    ) -> Frame:
        """
        Commit a frame, advancing the head by exactly 1.

        Raises:
            StaleSequenceError: ``based_on_sequence`` is not the head
            InvalidDiffError: a diff whose base does not resolve
            ValueError: error changes (use record_error)
        """
        if isinstance(changes, ErrorChanges):
            raise ValueError("Error frames do not advance the sequence; use record_error()")

        with self._lock:
            if based_on_sequence != self._head:
                raise StaleSequenceError(based_on_sequence, self._head)

            if isinstance(changes, Diff):
                self._check_base(scope_key, changes)

            frame = Frame(
                sequence=self._head + 1,
                scope_key=scope_key,
                changes=changes,
                metadata=metadata,
            )
            self._head = frame.sequence
            self._history.append(frame)
            self._committed[frame.sequence] = frame
            if isinstance(changes, FullPage):
                self._latest_full[scope_key] = frame
            self._enforce_limit()

        logger.debug(f"[frame_store] Committed {frame!r}")
        return frame

    def record_error(self, scope_key: str, changes: ErrorChanges, **metadata: Any) -> Frame:
        """Store an error frame at the current head without advancing it."""
        with self._lock:
            frame = Frame(
                sequence=self._head,
                scope_key=scope_key,
                changes=changes,
                metadata=metadata,
            )
            self._history.append(frame)
            self._enforce_limit()

        logger.debug(f"[frame_store] Recorded {frame!r} ({changes.code.value})")
        return frame

    def observe(self, scope_key: str, changes: Changes, sequence: int, **metadata: Any) -> Frame:
        """Build a frame at a fixed sequence without storing it (query results)."""
        return Frame(sequence=sequence, scope_key=scope_key, changes=changes, metadata=metadata)

    def _check_base(self, scope_key: str, diff: Diff) -> None:
        latest = self._latest_full.get(scope_key)
        if latest is None or latest.sequence != diff.base_frame:
            raise InvalidDiffError(scope_key, diff.base_frame)

    def _enforce_limit(self) -> None:
        if self._history_limit is None:
            return

        pinned = {f.id for f in self._latest_full.values()}
        while len(self._history) > self._history_limit:
            victim = next((f for f in self._history if f.id not in pinned), None)
            if victim is None:
                break
            self._history.remove(victim)
            if self._committed.get(victim.sequence) is victim:
                del self._committed[victim.sequence]

    # =========================================================================
    # Reads
    # =========================================================================

    def latest_full_frame(self, scope_key: str) -> Frame | None:
        """Most recent (highest sequence) full_page frame for a scope."""
        return self._latest_full.get(scope_key)

    def get(self, sequence: int) -> Frame | None:
        """Committed frame at ``sequence``, if still in history."""
        return self._committed.get(sequence)

    def resolve_base(self, frame: Frame) -> Frame | None:
        """
        Resolve a diff frame's base.

        Returns the full_page frame in the same scope with a lower
        sequence that the diff points at, or None.
        """
        if not isinstance(frame.changes, Diff):
            return None
        base = self._committed.get(frame.changes.base_frame)
        if (
            base is None
            or not base.is_full
            or base.scope_key != frame.scope_key
            or base.sequence >= frame.sequence
        ):
            return None
        return base

    def frames(
        self,
        scope_key: str | None = None,
        since: int | None = None,
        include_errors: bool = True,
    ) -> list[Frame]:
        """History in commit order, optionally filtered."""
        result = []
        for frame in self._history:
            if scope_key is not None and frame.scope_key != scope_key:
                continue
            if since is not None and frame.sequence <= since:
                continue
            if not include_errors and frame.is_error:
                continue
            result.append(frame)
        return result

    def scopes(self) -> list[str]:
        return sorted({f.scope_key for f in self._history})

    def __len__(self) -> int:
        return len(self._history)

    def __iter__(self) -> Iterator[Frame]:
        return iter(list(self._history))

    # =========================================================================
    # Recovery
    # =========================================================================

    def compact(self) -> int:
        """
        Clear history preceding a snapshot resync.

        Keeps only the latest full_page frame of each scope. The head is
        unchanged. Returns the number of frames dropped.
        """
        with self._lock:
            keep = {f.id for f in self._latest_full.values()}
            before = len(self._history)
            self._history = [f for f in self._history if f.id in keep]
            self._committed = {f.sequence: f for f in self._history}
            dropped = before - len(self._history)

        logger.info(f"[frame_store] Compacted history, dropped {dropped} frames")
        return dropped

    def reset(self, start_sequence: int | None = None) -> None:
        """
        Start a new sequence space (explicit new-session reset).

        This is the only operation that rewinds the head.
        """
        with self._lock:
            if start_sequence is not None:
                self._start_sequence = start_sequence
            self._head = self._start_sequence
            self._history = []
            self._committed = {}
            self._latest_full = {}

        logger.info(f"[frame_store] Reset, head is now {self._head}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "head": self._head,
            "frameCount": len(self._history),
            "scopes": self.scopes(),
            "historyLimit": self._history_limit,
        }
