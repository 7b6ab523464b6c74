"""Runtime: backoff strategies, the work queue, watch and manager.

``manager`` and ``watch`` depend on the controllers and are imported from
their modules directly.
"""

from alertsync.execution.queue import WorkQueue
from alertsync.execution.retry import (
    ExponentialBackoff,
    RetryContext,
    RetryStrategy,
)

__all__ = [
    "ExponentialBackoff",
    "RetryContext",
    "RetryStrategy",
    "WorkQueue",
]
