"""
Typed failures for alertsync.

The reconcilers never inspect exception messages. They branch on the type:
an absent external object on delete is success, a stale resource version is
re-fetched and written again, and anything else ends up in the resource's
``status.lastError`` and is requeued with backoff.

Manifesto:
    - **Families:** store, external API, transport, configuration
    - **Retry flag:** set per family, overridable per instance
    - **Context:** resource identity, external id and HTTP details travel
      with the error into logs
    - **Chaining:** the underlying exception is kept as ``cause``

Architecture:
    ::

        AlertSyncError
          ├── StoreError                       STORE, retryable
          │     ├── ResourceNotFoundError        not retryable
          │     ├── ConflictError                expected/actual version
          │     └── ConflictRetriesExhaustedError
          ├── ExternalAPIError                 EXTERNAL, retryable, body
          │     └── ExternalNotFoundError        404, not retryable
          ├── TransportError                   NETWORK, retryable
          └── ConfigError                      CONFIG, never retryable
                ├── MissingConfigError
                └── ManifestError

Guardrails:
    ❌ DON'T: Let ConflictError escape the status or finalizer writers
    ✅ DO: Re-fetch, retry, and raise ConflictRetriesExhaustedError once
       the budget is spent

    ❌ DON'T: Report ExternalNotFoundError from a delete
    ✅ DO: Count it as already deleted

Tags:
    errors, retry, alertsync
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Which side of the reconciler a failure came from."""

    STORE = "STORE"
    EXTERNAL = "EXTERNAL"
    NETWORK = "NETWORK"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Where a failure happened.

    Attributes:
        kind: ``AlertPolicy``, ``SlackNotificationChannel`` or
            ``EmailNotificationChannel``
        namespace: Namespace of the resource
        name: Name of the resource
        external_id: New Relic id of the object touched, kept so a later
            status write can record a policy that was created before a
            condition call failed
        url: Request URL
        http_status: Response status
        metadata: Anything else passed to ``with_context``
    """

    kind: str | None = None
    namespace: str | None = None
    name: str | None = None
    external_id: int | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Set fields plus metadata, flattened into one mapping."""
        flat = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "metadata" and getattr(self, f.name) is not None
        }
        flat.update(self.metadata)
        return flat


class AlertSyncError(Exception):
    """
    Root of the alertsync exception tree.

    Subclasses declare ``default_category`` and ``default_retryable``;
    constructors only pass them when an instance differs from its family.

    Examples:
        >>> AlertSyncError("boom").category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> AlertSyncError("boom").with_context(name="cpu").context.name
        'cpu'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category if category is not None else self.default_category
        self.retryable = self.default_retryable if retryable is None else retryable
        self.context = context if context is not None else ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> AlertSyncError:
        """Attach context and return ``self``.

        Known ``ErrorContext`` fields are set directly, other keys go to
        ``metadata``::

            raise error.with_context(kind="AlertPolicy", name="cpu", attempt=2)
        """
        known = {f.name for f in fields(self.context)} - {"metadata"}
        for key, value in kwargs.items():
            if key in known:
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Log/JSON form of the error."""
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if context := self.context.to_dict():
            data["context"] = context
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, {self.category.value})"


# ── Store ────────────────────────────────────────────────────────────────


class StoreError(AlertSyncError):
    """Resource store read or write failure."""

    default_category = ErrorCategory.STORE
    default_retryable = True


class ResourceNotFoundError(StoreError):
    """No resource with this identity is stored."""

    default_retryable = False

    def __init__(self, kind: str, namespace: str, name: str):
        super().__init__(
            f"{kind} {namespace}/{name} not found",
            context=ErrorContext(kind=kind, namespace=namespace, name=name),
        )


class ConflictError(StoreError):
    """Write carried a stale resource version."""

    def __init__(self, kind: str, namespace: str, name: str, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{kind} {namespace}/{name} was modified (version {expected} != {actual})",
            context=ErrorContext(kind=kind, namespace=namespace, name=name),
        )


class ConflictRetriesExhaustedError(StoreError):
    """A status or finalizer write kept conflicting until the budget ran out."""

    def __init__(self, message: str, *, attempts: int, cause: Exception | None = None):
        self.attempts = attempts
        super().__init__(message, cause=cause)


# ── New Relic API ────────────────────────────────────────────────────────


class ExternalAPIError(AlertSyncError):
    """Non-2xx response. ``body`` is the raw response text."""

    default_category = ErrorCategory.EXTERNAL
    default_retryable = True

    def __init__(self, status_code: int, body: str, *, url: str | None = None):
        self.status_code = status_code
        self.body = body
        text = (body or "").strip()
        super().__init__(
            text or f"HTTP {status_code}",
            context=ErrorContext(url=url, http_status=status_code),
        )


class ExternalNotFoundError(ExternalAPIError):
    """404: the object is gone."""

    default_retryable = False

    def __init__(self, body: str = "", *, url: str | None = None):
        super().__init__(404, body, url=url)


class TransportError(AlertSyncError):
    """The request never got a response (DNS, connect, timeout)."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


# ── Configuration ────────────────────────────────────────────────────────


class ConfigError(AlertSyncError):
    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """A setting needed by the requested command is unset."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


class ManifestError(ConfigError):
    """A manifest document failed to parse or validate."""


def is_retryable(error: Exception) -> bool:
    """Retry flag for alertsync errors; OS-level errors count as transient."""
    if isinstance(error, AlertSyncError):
        return error.retryable
    return isinstance(error, OSError)


def describe_error(error: BaseException) -> dict[str, Any]:
    """Log form of any exception, ``to_dict`` for alertsync errors."""
    if isinstance(error, AlertSyncError):
        return error.to_dict()
    return {
        "error_type": type(error).__name__,
        "message": str(error),
        "category": ErrorCategory.INTERNAL.value,
        "retryable": is_retryable(error),
    }


__all__ = [
    "AlertSyncError",
    "ConfigError",
    "ConflictError",
    "ConflictRetriesExhaustedError",
    "ErrorCategory",
    "ErrorContext",
    "ExternalAPIError",
    "ExternalNotFoundError",
    "ManifestError",
    "MissingConfigError",
    "ResourceNotFoundError",
    "StoreError",
    "TransportError",
    "describe_error",
    "is_retryable",
]
