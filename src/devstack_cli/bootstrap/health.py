"""Readiness polling for backing services.

This module provides a bounded poll used to wait for the database and cache
to accept connections after they are started.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

# A probe returns (ready, error message)
ReadinessProbe = Callable[[], tuple[bool, str | None]]


@dataclass
class ReadinessResult:
    """Result of a readiness wait."""

    ready: bool
    attempts: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None


class ReadinessPoller:
    """Poll a readiness probe until it succeeds or a deadline passes."""

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        interval_seconds: float = 1.0,
        settle_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize readiness poller.

        Args:
            timeout_seconds: Total time allowed for one wait.
            interval_seconds: Seconds between probe attempts.
            settle_seconds: Fixed pause after starting services, before probing.
            clock: Monotonic clock, injectable for tests.
            sleep: Sleep function, injectable for tests.
        """
        self.timeout_seconds = timeout_seconds
        self.interval_seconds = interval_seconds
        self.settle_seconds = settle_seconds
        self.clock = clock
        self.sleep = sleep

    def settle(self) -> None:
        """Give freshly started services a moment before the first probe."""
        if self.settle_seconds > 0:
            self.sleep(self.settle_seconds)

    def wait(
        self,
        probe: ReadinessProbe,
        on_attempt: Callable[[int, str | None], None] | None = None,
    ) -> ReadinessResult:
        """Poll until the probe reports ready or the timeout elapses.

        The probe always runs at least once.

        Args:
            probe: Callable returning (ready, error).
            on_attempt: Optional callback called with (attempt, error) after
                       each not-ready attempt.

        Returns:
            ReadinessResult with status information.
        """
        start = self.clock()
        attempt = 0
        last_error: str | None = None

        while True:
            attempt += 1
            ready, last_error = probe()
            elapsed = self.clock() - start
            if ready:
                return ReadinessResult(ready=True, attempts=attempt, elapsed_seconds=elapsed)

            if on_attempt:
                on_attempt(attempt, last_error)

            if elapsed + self.interval_seconds > self.timeout_seconds:
                break
            self.sleep(self.interval_seconds)

        return ReadinessResult(
            ready=False,
            attempts=attempt,
            elapsed_seconds=self.clock() - start,
            error=f"Not ready within {self.timeout_seconds:g}s. Last error: {last_error}",
        )
