"""
Deterministic hashing for configuration versions.

A resource's ``status.config_version`` is a content hash of the part of its
spec that is pushed to the alerting service. Comparing the stored version
with a freshly computed one tells the reconciler whether the external object
was built from the current spec.

Examples:
    >>> compute_hash("a", 1) == compute_hash("a", 1)
    True
    >>> config_version({"b": 1, "a": 2}) == config_version({"a": 2, "b": 1})
    True

Tags:
    hashing, idempotency, change-detection, alertsync
"""

import hashlib
import json
from typing import Any


def compute_hash(*values: Any, length: int = 32) -> str:
    """
    Compute a deterministic hash from values.

    Values are joined with ``|`` after conversion to ``str`` and hashed with
    SHA-256. Order matters: ``compute_hash("a", "b") != compute_hash("b", "a")``.

    Args:
        *values: Values to hash (converted to strings)
        length: Hex digest length (default 32 = 128 bits)

    Returns:
        Hex string of specified length
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def config_version(payload: Any, length: int = 16) -> str:
    """Hash a JSON-serializable payload independent of key order."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return compute_hash(canonical, length=length)
