"""Backoff strategies and a bounded retry loop.

Two users: the status/finalizer writers retry store conflicts with a short
exponential backoff, and the work queue uses the same strategies to space
out requeues of failing identities.

Example:
    >>> from alertsync.execution.retry import ExponentialBackoff, RetryContext
    >>>
    >>> strategy = ExponentialBackoff(max_retries=5, base_delay=0.05, max_delay=2.0)
    >>> ctx = RetryContext(strategy, retry_on=(ConflictError,))
    >>> resource = ctx.run(store.update_status, resource)
"""

from __future__ import annotations

import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from alertsync.core.settings import OperatorSettings

R = TypeVar("R")


class RetryStrategy(ABC):
    """How long to wait before each retry, and when to stop."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (zero-based)."""

    @abstractmethod
    def should_retry(self, attempt: int) -> bool:
        """Whether another retry is allowed after ``attempt`` retries."""


@dataclass
class ExponentialBackoff(RetryStrategy):
    """``base_delay * multiplier**attempt``, capped at ``max_delay``.

    With ``jitter`` the capped delay is moved by up to ``jitter_range`` of
    itself in either direction, never below zero.
    """

    max_retries: int = 5
    base_delay: float = 0.05
    max_delay: float = 2.0
    multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25

    def next_delay(self, attempt: int) -> float:
        capped = min(self.max_delay, self.base_delay * self.multiplier**attempt)
        if not self.jitter:
            return capped
        spread = capped * self.jitter_range
        return max(0.0, capped + random.uniform(-spread, spread))

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_retries

    @classmethod
    def for_conflicts(cls, settings: OperatorSettings) -> ExponentialBackoff:
        return cls(
            max_retries=settings.conflict_max_retries,
            base_delay=settings.conflict_base_delay,
            max_delay=settings.conflict_max_delay,
        )

    @classmethod
    def for_requeues(cls, settings: OperatorSettings) -> ExponentialBackoff:
        # Requeues never give up; only the delay is capped.
        return cls(
            max_retries=2**31,
            base_delay=settings.requeue_base_delay,
            max_delay=settings.requeue_max_delay,
            jitter=False,
        )


@dataclass
class RetryContext:
    """Runs a callable, retrying only the listed exception types.

    Any other exception propagates on the first occurrence. When the
    strategy gives up, the last retryable exception is re-raised; callers
    wrap it into something more specific if they need to.

    Example:
        >>> ctx = RetryContext(ExponentialBackoff(max_retries=3), retry_on=(ConflictError,))
        >>> ctx.run(write)
    """

    strategy: RetryStrategy
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    on_retry: Callable[[int, Exception, float], None] | None = None
    sleep: Callable[[float], None] = time.sleep
    attempt: int = field(default=0, init=False)
    last_error: Exception | None = field(default=None, init=False)

    @property
    def retries(self) -> int:
        """Attempts beyond the first."""
        return max(0, self.attempt - 1)

    def run(self, func: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        while True:
            self.attempt += 1
            try:
                return func(*args, **kwargs)
            except self.retry_on as exc:
                self.last_error = exc
                if not self.strategy.should_retry(self.retries):
                    raise
                wait = self.strategy.next_delay(self.retries)
                if self.on_retry is not None:
                    self.on_retry(self.attempt, exc, wait)
                self.sleep(wait)
