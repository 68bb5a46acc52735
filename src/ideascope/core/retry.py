"""Retry helper — bounded retries over operations that return tagged outcomes.

Operations report failure by returning ``Err`` instead of raising, so callers
decide by ``Err.kind`` which failures are worth another attempt::

    async def attempt(n: int, last: Err | None) -> Ok[str] | Err:
        try:
            return Ok(await client.get(url))
        except httpx.TransportError as e:
            return Err(ErrorKind.TRANSPORT, str(e), cause=e)

    outcome = await with_retry(attempt, RetryPolicy(max_attempts=3))
    if isinstance(outcome, Err):
        raise QueryError(outcome.message) from outcome.cause
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure categories that drive retry decisions."""

    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    VALIDATION = "validation"
    POLICY = "policy"


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome."""

    value: T
    attempts: int = 1


@dataclass(frozen=True)
class Err:
    """Failed outcome.

    Attributes:
        kind: Failure category.
        message: Human-readable failure detail.
        attempts: Attempts made when this outcome was produced.
        retryable: False for failures that cannot succeed on retry (e.g. HTTP 401).
        cause: Original exception, if any.
    """

    kind: ErrorKind
    message: str
    attempts: int = 1
    retryable: bool = True
    cause: BaseException | None = None


Outcome = Ok[T] | Err


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff schedule.

    The delay after failed attempt ``n`` is ``base_delay * 2**(n-1)`` plus up
    to ``base_delay`` of random jitter, capped at ``max_delay``.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter: bool = True
    retry_on: frozenset[ErrorKind] = frozenset({ErrorKind.TRANSPORT, ErrorKind.TIMEOUT})

    def delay_for(self, attempt: int) -> float:
        delay = self.base_delay * (2 ** (attempt - 1))
        if self.jitter:
            delay += random.uniform(0, self.base_delay)
        return min(delay, self.max_delay)

    def should_retry(self, err: Err, attempt: int) -> bool:
        return err.retryable and err.kind in self.retry_on and attempt < self.max_attempts


async def with_retry(
    operation: Callable[[int, Err | None], Awaitable[Outcome[T]]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Outcome[T]:
    """Run *operation* until it succeeds or the policy gives up.

    Args:
        operation: Called with the 1-based attempt number and the previous
            failure (``None`` on the first attempt).
        policy: Attempt budget, backoff and retryable kinds.
        sleep: Awaitable used for backoff (injectable for tests).

    Returns:
        ``Ok`` with the value, or the last ``Err``; both carry the attempt count.
    """
    last: Err | None = None
    for attempt in range(1, max(policy.max_attempts, 1) + 1):
        outcome = await operation(attempt, last)
        if isinstance(outcome, Ok):
            return dataclasses.replace(outcome, attempts=attempt)

        last = dataclasses.replace(outcome, attempts=attempt)
        if not policy.should_retry(last, attempt):
            return last

        delay = policy.delay_for(attempt)
        logger.debug(
            "Attempt %d/%d failed (%s: %s), retrying in %.2fs",
            attempt,
            policy.max_attempts,
            last.kind.value,
            last.message,
            delay,
        )
        await sleep(delay)

    assert last is not None
    return last
