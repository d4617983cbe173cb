"""
taxonomy_import.rate_limit - Write-rate throttling between import phases.

The reconciler calls wait("parent") after every parent term it creates
and wait("batch") every config.PROGRESS_EVERY rows.  The default limiter
just sleeps a fixed amount; swap in another RateLimiter to change the
policy without touching the reconciler.
"""

from __future__ import annotations

import abc
import time
from typing import Callable

import config

PHASE_PARENT = "parent"
PHASE_BATCH = "batch"


class RateLimiter(abc.ABC):

    @abc.abstractmethod
    def wait(self, phase: str) -> None:
        """Block as long as the policy requires for `phase`."""


class FixedDelayRateLimiter(RateLimiter):

    def __init__(
        self,
        parent_delay: float = config.PARENT_DELAY,
        batch_delay: float = config.BATCH_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.delays = {PHASE_PARENT: parent_delay, PHASE_BATCH: batch_delay}
        self._sleep = sleep

    def wait(self, phase: str) -> None:
        delay = self.delays.get(phase, 0.0)
        if delay > 0:
            self._sleep(delay)


class NullRateLimiter(RateLimiter):
    """No throttling (tests, offline bulk loads)."""

    def wait(self, phase: str) -> None:
        return None
