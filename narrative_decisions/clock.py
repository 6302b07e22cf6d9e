"""Wall-clock helpers. Every time value in the package is epoch millis."""

from __future__ import annotations

import time
from collections.abc import Callable

Clock = Callable[[], float]


def system_clock() -> float:
    return time.time() * 1000
