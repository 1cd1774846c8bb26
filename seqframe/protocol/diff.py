"""
Diff Resolver.

Decides how a fresh observation is encoded:

- full_page when the scope has no full_page frame yet, when a full
  refresh is requested (explicitly, by the observation, or by moving to
  a new scope), or when the observation has no selector to anchor a
  partial change on
- diff otherwise, based on the most recent full_page frame of the scope
- error for every failure, never a diff: after a failure the counterpart
  cannot be assumed to hold a consistent base

Example:
    resolver = DiffResolver(store)
    frame = resolver.commit("page", Observation(content="<ul>...</ul>"), based_on_sequence=1)
    assert frame.is_full

    frame = resolver.commit(
        "page",
        Observation(content="<button disabled>", selector="#submit"),
        based_on_sequence=frame.sequence,
    )
    assert frame.base_frame == 2
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .errors import InvalidDiffError
from .frames import Changes, Diff, ErrorChanges, ErrorCode, FullPage

if TYPE_CHECKING:
    from .actions import Observation
    from .frames import Frame
    from .store import FrameStore

logger = logging.getLogger(__name__)


class DiffResolver:
    """Chooses full_page, diff or error encoding against a FrameStore."""

    def __init__(self, store: FrameStore):
        self.store = store

    def target_scope(self, scope_key: str, observation: Observation) -> str:
        """Scope the observation describes (it may have navigated away)."""
        return observation.scope_key or scope_key

    def encode(
        self,
        scope_key: str,
        observation: Observation,
        full_refresh: bool = False,
        as_of: int | None = None,
    ) -> Changes:
        """
        Encode a successful observation as FullPage or Diff.

        ``as_of`` bounds the base frame: a base committed after that
        sequence is not visible, and a full snapshot is used instead.
        """
        target = self.target_scope(scope_key, observation)
        scope_changed = target != scope_key

        if full_refresh or observation.full_refresh or scope_changed:
            return FullPage(content=observation.full_content)

        if observation.selector is None:
            return FullPage(content=observation.full_content)

        # Highest sequence wins; older full frames are superseded content
        base = self.store.latest_full_frame(target)
        if base is None or (as_of is not None and base.sequence > as_of):
            return FullPage(content=observation.full_content)

        return Diff(
            selector=observation.selector,
            content=observation.content,
            base_frame=base.sequence,
        )

    def encode_failure(
        self,
        scope_key: str,
        code: ErrorCode,
        message: str,
        snapshot: str | None = None,
    ) -> ErrorChanges:
        """
        Encode a failure.

        Content is the best available view of the current state: the
        executor's own snapshot, else the latest full_page content of the
        scope, else empty.
        """
        if snapshot is None:
            base = self.store.latest_full_frame(scope_key)
            snapshot = base.content if base is not None else ""
        return ErrorChanges(code=code, message=message, content=snapshot)

    def commit(
        self,
        scope_key: str,
        observation: Observation,
        based_on_sequence: int,
        full_refresh: bool = False,
        **metadata: Any,
    ) -> Frame:
        """
        Encode and append a mutation result.

        A diff rejected by the store (its base no longer resolves) is
        re-encoded as a full snapshot.

        Raises:
            StaleSequenceError: from the store, with nothing appended
        """
        target = self.target_scope(scope_key, observation)
        changes = self.encode(scope_key, observation, full_refresh=full_refresh)
        try:
            return self.store.append(target, changes, based_on_sequence, **metadata)
        except InvalidDiffError as e:
            logger.warning(f"[diff_resolver] {e}; re-encoding as full_page")
            changes = FullPage(content=observation.full_content)
            return self.store.append(target, changes, based_on_sequence, **metadata)

    def observe(
        self,
        scope_key: str,
        observation: Observation,
        sequence: int,
        **metadata: Any,
    ) -> Frame:
        """Encode a query result as an unstored frame at a fixed sequence."""
        target = self.target_scope(scope_key, observation)
        changes = self.encode(scope_key, observation, as_of=sequence)
        return self.store.observe(target, changes, sequence, **metadata)
