"""Retry with exponential backoff, as an explicit state machine.

    ATTEMPTING --ok--> SUCCEEDED
    ATTEMPTING --retryable error, attempts left--> BACKOFF --sleep--> ATTEMPTING
    ATTEMPTING --other error, or no attempts left--> FAILED

The attempt ceiling, the delay curve and the jitter are held by RetryPolicy
so each can be tested without running a request.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class RetryState(enum.Enum):
    ATTEMPTING = "attempting"
    BACKOFF = "backoff"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    factor: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.0  # up to this fraction of the delay is added at random

    def delay(self, attempt: int) -> float:
        """Delay before the attempt following `attempt` (1-based)."""
        delay = min(self.max_delay, self.base_delay * self.factor ** (attempt - 1))
        if self.jitter > 0:
            delay += random.uniform(0, delay * self.jitter)
        return delay


class RetryMachine(Generic[T]):
    """Drives one operation through the retry states.

    `is_retryable` classifies each error raised by the operation. When the
    machine ends in FAILED the last error is re-raised; `exhausted` tells
    whether that happened because the attempt ceiling was reached.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        is_retryable: Callable[[Exception], bool],
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.policy = policy
        self._is_retryable = is_retryable
        self._sleep = sleep
        self.state = RetryState.ATTEMPTING
        self.attempt = 0
        self.exhausted = False
        self.last_error: Exception | None = None
        self.history: list[RetryState] = [RetryState.ATTEMPTING]

    def _move(self, state: RetryState) -> None:
        self.state = state
        self.history.append(state)

    async def run(self, operation: Callable[[int], Awaitable[T]]) -> T:
        while True:
            if self.state is RetryState.ATTEMPTING:
                self.attempt += 1
                try:
                    result = await operation(self.attempt)
                except Exception as e:
                    self.last_error = e
                    if not self._is_retryable(e):
                        self._move(RetryState.FAILED)
                    elif self.attempt >= self.policy.max_attempts:
                        self.exhausted = True
                        self._move(RetryState.FAILED)
                    else:
                        self._move(RetryState.BACKOFF)
                else:
                    self._move(RetryState.SUCCEEDED)
                    return result

            elif self.state is RetryState.BACKOFF:
                delay = self.policy.delay(self.attempt)
                logger.warning(
                    "attempt %d/%d failed (%s); retrying in %.2fs",
                    self.attempt, self.policy.max_attempts, self.last_error, delay,
                )
                await self._sleep(delay)
                self._move(RetryState.ATTEMPTING)

            else:
                assert self.last_error is not None
                raise self.last_error
