"""Outbound call budget for the decision service.

The remote service reports its budget with two response headers:

    X-RateLimit-Remaining   calls left in the current window
    X-RateLimit-Reset       window end, seconds since the epoch

When the service does not send them, the limiter keeps its own count over a
fixed window of `window_ms`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from narrative_decisions.clock import Clock, system_clock
from narrative_decisions.models import RateLimitState

logger = logging.getLogger(__name__)

REMAINING_HEADER = "X-RateLimit-Remaining"
RESET_HEADER = "X-RateLimit-Reset"


class RateLimiter:
    def __init__(
        self,
        limit: int,
        window_ms: int = 60_000,
        clock: Clock = system_clock,
    ) -> None:
        self._limit = limit
        self._window_ms = window_ms
        self._clock = clock
        self._remaining = limit
        self._reset_time = clock() + window_ms
        # Once the service has reported a reset time, it owns the window
        self._server_window = False

    @property
    def state(self) -> RateLimitState:
        return RateLimitState(remaining=self._remaining, reset_time=self._reset_time)

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def reset_time(self) -> float:
        return self._reset_time

    def is_limited(self) -> bool:
        """True when no calls are left and the window has not reset yet."""
        return self._remaining <= 0 and self._clock() < self._reset_time

    def apply_headers(self, headers: Mapping[str, str]) -> bool:
        """Update state from response headers.

        Returns True if the remaining-count header was present. Absent or
        unparseable headers leave the corresponding value untouched.
        """
        remaining = _parse_int(headers.get(REMAINING_HEADER))
        reset = _parse_int(headers.get(RESET_HEADER))
        if remaining is not None:
            self._remaining = remaining
        if reset is not None:
            self._reset_time = reset * 1000
            self._server_window = True
        if remaining is not None or reset is not None:
            logger.debug(
                "rate limit from headers remaining=%d reset=%d",
                self._remaining, self._reset_time,
            )
        return remaining is not None

    def consume(self) -> None:
        """Count one call against the budget.

        A new local window is started only while the service has never sent
        a reset time; a server-reported reset is left as it is.
        """
        now = self._clock()
        if not self._server_window and now >= self._reset_time:
            self._remaining = self._limit
            self._reset_time = now + self._window_ms
        self._remaining -= 1


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring malformed rate limit header value %r", value)
        return None
