"""Tests for the retry helper."""

from __future__ import annotations

import pytest

from ideascope.core.retry import Err, ErrorKind, Ok, RetryPolicy, with_retry


class _Sleeps:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestRetryPolicy:
    def test_delay_doubles_without_jitter(self) -> None:
        policy = RetryPolicy(base_delay=1.0, max_delay=10.0, jitter=False)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_delay_is_capped(self) -> None:
        policy = RetryPolicy(base_delay=1.0, max_delay=10.0, jitter=True)
        assert all(policy.delay_for(n) <= 10.0 for n in range(1, 10))

    def test_jitter_stays_within_one_base_delay(self) -> None:
        policy = RetryPolicy(base_delay=1.0, max_delay=100.0, jitter=True)
        for _ in range(50):
            assert 2.0 <= policy.delay_for(2) <= 3.0

    def test_should_retry_respects_kind_and_flag(self) -> None:
        policy = RetryPolicy(max_attempts=3)
        assert policy.should_retry(Err(ErrorKind.TRANSPORT, "x"), 1)
        assert not policy.should_retry(Err(ErrorKind.VALIDATION, "x"), 1)
        assert not policy.should_retry(Err(ErrorKind.TRANSPORT, "x", retryable=False), 1)
        assert not policy.should_retry(Err(ErrorKind.TRANSPORT, "x"), 3)


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self) -> None:
        sleeps = _Sleeps()

        async def op(n: int, last: Err | None) -> Ok[str] | Err:
            return Ok("done")

        outcome = await with_retry(op, RetryPolicy(), sleep=sleeps)
        assert outcome == Ok("done", attempts=1)
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_retries_until_success(self) -> None:
        sleeps = _Sleeps()
        seen: list[Err | None] = []

        async def op(n: int, last: Err | None) -> Ok[int] | Err:
            seen.append(last)
            if n < 3:
                return Err(ErrorKind.TIMEOUT, f"slow {n}")
            return Ok(n)

        outcome = await with_retry(op, RetryPolicy(max_attempts=3, jitter=False), sleep=sleeps)

        assert isinstance(outcome, Ok)
        assert outcome.value == 3
        assert outcome.attempts == 3
        assert sleeps.delays == [1.0, 2.0]
        assert seen[0] is None
        assert seen[1] is not None and seen[1].message == "slow 1"

    @pytest.mark.asyncio
    async def test_exhaustion_returns_last_err(self) -> None:
        async def op(n: int, last: Err | None) -> Ok[int] | Err:
            return Err(ErrorKind.TRANSPORT, f"boom {n}")

        outcome = await with_retry(op, RetryPolicy(max_attempts=3), sleep=_Sleeps())

        assert isinstance(outcome, Err)
        assert outcome.message == "boom 3"
        assert outcome.attempts == 3

    @pytest.mark.asyncio
    async def test_non_retryable_stops_immediately(self) -> None:
        calls = 0

        async def op(n: int, last: Err | None) -> Ok[int] | Err:
            nonlocal calls
            calls += 1
            return Err(ErrorKind.TRANSPORT, "HTTP 401", retryable=False)

        outcome = await with_retry(op, RetryPolicy(max_attempts=3), sleep=_Sleeps())

        assert isinstance(outcome, Err)
        assert outcome.attempts == 1
        assert calls == 1

    @pytest.mark.asyncio
    async def test_kind_outside_policy_is_not_retried(self) -> None:
        calls = 0

        async def op(n: int, last: Err | None) -> Ok[int] | Err:
            nonlocal calls
            calls += 1
            return Err(ErrorKind.POLICY, "disallowed")

        await with_retry(op, RetryPolicy(max_attempts=5), sleep=_Sleeps())
        assert calls == 1
