"""Outcome of one reconcile invocation."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """``requeue`` asks the queue to retry later; ``error`` is the failure, if any.

    >>> ReconcileResult.ok().succeeded
    True
    >>> ReconcileResult.retry().requeue
    True
    """

    requeue: bool = False
    error: Exception | None = None

    @classmethod
    def ok(cls) -> ReconcileResult:
        return cls()

    @classmethod
    def fail(cls, error: Exception) -> ReconcileResult:
        return cls(requeue=True, error=error)

    @classmethod
    def retry(cls) -> ReconcileResult:
        return cls(requeue=True)

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.requeue
