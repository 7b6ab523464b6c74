"""Core primitives: errors, logging, settings, hashing, protocols."""

from alertsync.core.errors import (
    AlertSyncError,
    ConfigError,
    ConflictError,
    ConflictRetriesExhaustedError,
    ErrorCategory,
    ErrorContext,
    ExternalAPIError,
    ExternalNotFoundError,
    ManifestError,
    MissingConfigError,
    ResourceNotFoundError,
    StoreError,
    TransportError,
    describe_error,
    is_retryable,
)
from alertsync.core.hashing import compute_hash, config_version
from alertsync.core.logging import LogContext, configure_logging, get_logger

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
    "compute_hash",
    "config_version",
    "LogContext",
    "configure_logging",
    "get_logger",
]
