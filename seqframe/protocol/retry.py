"""
Re-anchoring retries.

A STALE_SEQUENCE rejection tells the caller which head to re-anchor on.
Callers that are happy to re-apply an action to newer state (for example
an idempotent query, or "add 1" where the current value does not matter)
can let ``submit_with_reanchor`` do the re-anchoring, with a backoff
between attempts.

Re-anchoring is always a caller decision. The dispatcher itself never
retries: it cannot know whether an action still makes sense on a state
the caller has not observed.

Example:
    result = await submit_with_reanchor(
        dispatcher,
        Action(tool="increment_value", based_on_sequence=1, payload={"amount": 1}),
        policy=RetryPolicy(max_attempts=3, backoff=ConstantBackoff(delay=0.05)),
    )
    if result.success:
        print(result.frame.sequence)
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .frames import ErrorCode

if TYPE_CHECKING:
    from .actions import Action
    from .dispatcher import ActionDispatcher
    from .frames import Frame

logger = logging.getLogger(__name__)


# =============================================================================
# Backoff Strategies
# =============================================================================


class BackoffStrategy(ABC):
    """Delay calculation between attempts."""

    @abstractmethod
    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay before the next attempt.

        Args:
            attempt: Attempt that just failed (1-indexed)

        Returns:
            Delay in seconds
        """
        ...


@dataclass
class NoBackoff(BackoffStrategy):
    """Retry immediately."""

    def get_delay(self, attempt: int) -> float:
        return 0.0


@dataclass
class ConstantBackoff(BackoffStrategy):
    """Fixed delay between attempts."""

    delay: float = 0.1

    def get_delay(self, attempt: int) -> float:
        return self.delay


@dataclass
class ExponentialBackoff(BackoffStrategy):
    """
    Exponentially increasing delay, with optional jitter.

    delay = base * (multiplier ^ (attempt - 1))

    Jitter spreads out agents that were all rejected by the same commit.

    Example:
        backoff = ExponentialBackoff(base=0.1, multiplier=2.0, max_delay=2.0)
        # Attempt 1: 0.1s, Attempt 2: 0.2s, Attempt 3: 0.4s, ...
    """

    base: float = 0.1
    multiplier: float = 2.0
    max_delay: float = 5.0
    jitter: bool = True
    jitter_factor: float = 0.25  # +/- 25%

    def get_delay(self, attempt: int) -> float:
        delay = min(self.base * (self.multiplier ** (attempt - 1)), self.max_delay)
        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay = max(0.0, delay + random.uniform(-jitter_range, jitter_range))
        return delay


# =============================================================================
# Retry Policy
# =============================================================================


@dataclass
class RetryPolicy:
    """
    How often, and on which error codes, to re-anchor and resubmit.

    Example:
        policy = RetryPolicy(max_attempts=3, backoff=ExponentialBackoff())
    """

    max_attempts: int = 3
    backoff: BackoffStrategy = field(default_factory=NoBackoff)
    retry_on: tuple[ErrorCode, ...] = (ErrorCode.STALE_SEQUENCE,)

    def should_retry(self, attempt: int, frame: Frame) -> bool:
        if attempt >= self.max_attempts:
            return False
        return frame.error_code in self.retry_on

    def get_delay(self, attempt: int) -> float:
        return self.backoff.get_delay(attempt)


NO_RETRY = RetryPolicy(max_attempts=1)

REANCHOR_ONCE = RetryPolicy(max_attempts=2)

REANCHOR_WITH_BACKOFF = RetryPolicy(
    max_attempts=5,
    backoff=ExponentialBackoff(base=0.05, multiplier=2.0, max_delay=1.0),
)


# =============================================================================
# Re-anchoring submit
# =============================================================================


@dataclass
class ReanchorResult:
    """Final frame of a re-anchored submission plus every rejection seen."""

    frame: Frame
    attempts: int = 1
    total_delay: float = 0.0
    rejections: list[Frame] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.frame.is_error


async def submit_with_reanchor(
    dispatcher: ActionDispatcher,
    action: Action,
    policy: RetryPolicy = REANCHOR_ONCE,
) -> ReanchorResult:
    """
    Submit an action, re-anchoring it on the current head after a
    retryable rejection.

    Each attempt is a new action (new id) anchored on the head observed
    right before it is submitted.
    """
    attempt = 0
    total_delay = 0.0
    rejections: list[Frame] = []

    while True:
        attempt += 1
        frame = await dispatcher.submit(action)

        if not frame.is_error or not policy.should_retry(attempt, frame):
            if frame.is_error:
                logger.warning(
                    f"[retry] '{action.tool}' gave up after {attempt} attempts: "
                    f"{frame.error_code.value}"
                )
            return ReanchorResult(
                frame=frame,
                attempts=attempt,
                total_delay=total_delay,
                rejections=rejections,
            )

        rejections.append(frame)
        delay = policy.get_delay(attempt)
        total_delay += delay
        if delay:
            await asyncio.sleep(delay)

        head = dispatcher.store.head
        dispatcher.plog.reanchored(action.tool, action.based_on_sequence, head, attempt)
        action = action.anchored_on(head)
