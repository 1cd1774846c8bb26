"""
Tests for backoff strategies and re-anchoring submission.
"""
import asyncio

import pytest

from seqframe.protocol import (
    Action,
    ConstantBackoff,
    ErrorCode,
    ExponentialBackoff,
    NoBackoff,
    RetryPolicy,
    error_frame,
    get_metrics,
    submit_with_reanchor,
)
from seqframe.protocol.retry import NO_RETRY, REANCHOR_ONCE


# =============================================================================
# Backoff Strategy Tests
# =============================================================================


class TestBackoff:
    """Tests for delay calculation."""

    def test_no_backoff(self):
        assert NoBackoff().get_delay(1) == 0.0
        assert NoBackoff().get_delay(10) == 0.0

    def test_constant_backoff(self):
        backoff = ConstantBackoff(delay=0.5)
        assert backoff.get_delay(1) == 0.5
        assert backoff.get_delay(4) == 0.5

    def test_exponential_without_jitter(self):
        backoff = ExponentialBackoff(base=0.1, multiplier=2.0, max_delay=1.0, jitter=False)

        assert backoff.get_delay(1) == pytest.approx(0.1)
        assert backoff.get_delay(2) == pytest.approx(0.2)
        assert backoff.get_delay(3) == pytest.approx(0.4)
        assert backoff.get_delay(10) == pytest.approx(1.0)

    def test_exponential_jitter_stays_in_range(self):
        backoff = ExponentialBackoff(base=1.0, multiplier=1.0, jitter=True, jitter_factor=0.25)
        for _ in range(50):
            assert 0.75 <= backoff.get_delay(1) <= 1.25


# =============================================================================
# Retry Policy Tests
# =============================================================================


class TestRetryPolicy:
    """Tests for retry decisions."""

    def stale(self):
        return error_frame(ErrorCode.STALE_SEQUENCE, "stale", sequence=2, scope_key="counter")

    def test_retries_stale_until_limit(self):
        policy = RetryPolicy(max_attempts=3)
        assert policy.should_retry(1, self.stale())
        assert policy.should_retry(2, self.stale())
        assert not policy.should_retry(3, self.stale())

    def test_other_codes_not_retried(self):
        frame = error_frame(ErrorCode.EXECUTOR_FAILURE, "boom", sequence=1, scope_key="counter")
        assert not RetryPolicy().should_retry(1, frame)

    def test_presets(self):
        assert NO_RETRY.max_attempts == 1
        assert REANCHOR_ONCE.max_attempts == 2
        assert not NO_RETRY.should_retry(1, self.stale())


# =============================================================================
# Re-anchoring Tests
# =============================================================================


class TestSubmitWithReanchor:
    """Tests for re-anchoring on the current head."""

    @pytest.mark.asyncio
    async def test_success_first_time(self, dispatcher):
        result = await submit_with_reanchor(
            dispatcher,
            Action(tool="increment_value", based_on_sequence=1, payload={"amount": 1}),
        )

        assert result.success
        assert result.attempts == 1
        assert result.rejections == []

    @pytest.mark.asyncio
    async def test_stale_action_reanchored_on_head(self, dispatcher, store, int_stream):
        await dispatcher.submit(
            Action(tool="increment_value", based_on_sequence=1, payload={"amount": 5})
        )

        result = await submit_with_reanchor(
            dispatcher,
            Action(tool="increment_value", based_on_sequence=1, payload={"amount": 1}),
        )

        assert result.success
        assert result.attempts == 2
        assert result.frame.sequence == 3
        assert [f.error_code for f in result.rejections] == [ErrorCode.STALE_SEQUENCE]
        assert int_stream.value == 6
        assert get_metrics().reanchors == 1

    @pytest.mark.asyncio
    async def test_no_retry_returns_rejection(self, dispatcher):
        await dispatcher.submit(
            Action(tool="increment_value", based_on_sequence=1, payload={"amount": 5})
        )

        result = await submit_with_reanchor(
            dispatcher,
            Action(tool="increment_value", based_on_sequence=1, payload={"amount": 1}),
            policy=NO_RETRY,
        )

        assert not result.success
        assert result.frame.error_code is ErrorCode.STALE_SEQUENCE
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_executor_failure_not_retried(self, dispatcher):
        result = await submit_with_reanchor(
            dispatcher,
            Action(tool="increment_value", based_on_sequence=1, payload={"amount": "x"}),
            policy=RetryPolicy(max_attempts=5),
        )

        assert result.frame.error_code is ErrorCode.EXECUTOR_FAILURE
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_backoff_delay_is_accumulated(self, dispatcher):
        await dispatcher.submit(
            Action(tool="increment_value", based_on_sequence=1, payload={"amount": 5})
        )

        result = await submit_with_reanchor(
            dispatcher,
            Action(tool="get_current_value", based_on_sequence=1),
            policy=RetryPolicy(max_attempts=2, backoff=ConstantBackoff(delay=0.01)),
        )

        assert result.success
        assert result.frame.content == "Value is 5"
        assert result.total_delay == pytest.approx(0.01)

    @pytest.mark.asyncio
    async def test_competing_agents_both_land(self, dispatcher, store, int_stream):
        results = await asyncio.gather(
            submit_with_reanchor(
                dispatcher,
                Action(tool="increment_value", based_on_sequence=1, payload={"amount": 1}),
            ),
            submit_with_reanchor(
                dispatcher,
                Action(tool="increment_value", based_on_sequence=1, payload={"amount": 1}),
            ),
        )

        assert all(r.success for r in results)
        assert sorted(r.frame.sequence for r in results) == [2, 3]
        assert int_stream.value == 2
