"""Reconnect schedule for when the followed file goes away."""

import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum

from .config import FollowConfig


class Phase(Enum):
    FAST = "fast"
    SLOW = "slow"


@dataclass(frozen=True)
class Attempt:
    """Wait ``delay`` seconds, then try to reopen."""

    phase: Phase
    delay: float


class ReconnectPolicy:
    """
    Two-tier retry cadence.

    A fixed number of quick attempts first, then (if configured) one attempt
    per ``slow_interval`` until the retry budget is used up, or forever if the
    budget is negative. The budget only covers the slow phase.
    """

    def __init__(
        self,
        config: FollowConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or FollowConfig()
        self._clock = clock

    def attempts(self) -> Iterator[Attempt]:
        config = self.config
        for i in range(config.fast_attempts):
            yield Attempt(Phase.FAST, 0.0 if i == 0 else config.fast_interval)

        if config.retry == 0:
            return

        started = self._clock()
        while config.unbounded or self._clock() - started < config.retry:
            yield Attempt(Phase.SLOW, config.slow_interval)
