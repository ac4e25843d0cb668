"""Readiness polling.

Infrastructure state such as load balancer addresses, pod scheduling and
API server health only becomes visible eventually. `Poller` repeats an
observation at a fixed interval until it reports READY or FATAL.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from ..shared.logging import get_logger
from .errors import PollCancelledError, PollFatalError, PollTimeoutError

logger = get_logger(__name__)


class Readiness(Enum):
    """Outcome of a single observation."""

    NOT_READY = "not_ready"
    READY = "ready"
    FATAL = "fatal"


@dataclass
class Observation:
    """Result of one observation, with an optional human-readable detail."""

    readiness: Readiness
    detail: str | None = None

    @classmethod
    def ready(cls, detail: str | None = None) -> Observation:
        return cls(Readiness.READY, detail)

    @classmethod
    def not_ready(cls, detail: str | None = None) -> Observation:
        return cls(Readiness.NOT_READY, detail)

    @classmethod
    def fatal(cls, detail: str) -> Observation:
        return cls(Readiness.FATAL, detail)


@dataclass
class PollResult:
    """Summary of a successful wait."""

    attempts: int
    elapsed_seconds: float


class Poller:
    """Poll an observation until ready, fatal, exhausted or cancelled."""

    def __init__(
        self,
        interval_seconds: float,
        max_attempts: int | None = None,
        timeout_seconds: float | None = None,
        cancel_event: threading.Event | None = None,
        immediate: bool = True,
    ):
        """Initialize poller.

        Args:
            interval_seconds: Seconds between observations.
            max_attempts: Attempt budget, or None to poll forever.
            timeout_seconds: Overall deadline, or None for no deadline.
            cancel_event: Setting this event stops the wait early.
            immediate: Observe once before the first sleep.
        """
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self.timeout_seconds = timeout_seconds
        self.cancel_event = cancel_event or threading.Event()
        self.immediate = immediate

    @property
    def unbounded(self) -> bool:
        """True when neither an attempt budget nor a deadline is set."""
        return self.max_attempts is None and self.timeout_seconds is None

    def _wait(self, seconds: float | None = None) -> bool:
        """Sleep one interval (or `seconds`). Returns True if cancelled meanwhile."""
        return self.cancel_event.wait(self.interval_seconds if seconds is None else seconds)

    def poll_until(
        self,
        observe: Callable[[], Observation],
        description: str,
        on_attempt: Callable[[int, Observation], None] | None = None,
    ) -> PollResult:
        """Run `observe` until it reports READY.

        Exceptions raised by `observe` are treated as NOT_READY so that
        transient read errors do not abort the wait.

        Args:
            observe: Performs one observation.
            description: What is being waited for, used in errors and logs.
            on_attempt: Optional callback called with (attempt, observation).

        Returns:
            PollResult with attempt count and elapsed time.

        Raises:
            PollFatalError: The observation reported FATAL.
            PollTimeoutError: The attempt budget or deadline ran out.
            PollCancelledError: The cancel event was set.
        """
        start = time.monotonic()
        attempt = 0

        if not self.immediate:
            first_wait = self.interval_seconds
            if self.timeout_seconds is not None:
                first_wait = min(first_wait, self.timeout_seconds)
            if self._wait(first_wait):
                raise PollCancelledError(f"cancelled while waiting for {description}")

        while True:
            if self.cancel_event.is_set():
                raise PollCancelledError(
                    f"cancelled while waiting for {description}", attempts=attempt
                )

            attempt += 1
            try:
                observation = observe()
            except Exception as e:
                observation = Observation.not_ready(str(e) or type(e).__name__)

            if on_attempt:
                on_attempt(attempt, observation)

            if observation.readiness == Readiness.READY:
                elapsed = time.monotonic() - start
                logger.debug("poll_ready", target=description, attempts=attempt)
                return PollResult(attempts=attempt, elapsed_seconds=elapsed)

            if observation.readiness == Readiness.FATAL:
                raise PollFatalError(
                    f"{description}: {observation.detail}", attempts=attempt
                )

            logger.debug(
                "poll_not_ready",
                target=description,
                attempt=attempt,
                detail=observation.detail,
            )

            if self.max_attempts is not None and attempt >= self.max_attempts:
                raise PollTimeoutError(
                    f"{description} not ready after {attempt} attempts. "
                    f"Last observation: {observation.detail or 'not ready'}",
                    attempts=attempt,
                )
            if (
                self.timeout_seconds is not None
                and time.monotonic() - start + self.interval_seconds > self.timeout_seconds
            ):
                raise PollTimeoutError(
                    f"{description} not ready within {self.timeout_seconds:g}s. "
                    f"Last observation: {observation.detail or 'not ready'}",
                    attempts=attempt,
                )

            if self._wait():
                raise PollCancelledError(
                    f"cancelled while waiting for {description}", attempts=attempt
                )
