"""Daemon exceptions and their HTTP error representation."""

import time
from typing import Any, Dict, List, Optional


class DaemonError(Exception):
    """Base exception for errors surfaced by the daemon API."""

    status = 500

    def __init__(
        self, code: str, message: str, data: Optional[Dict[str, Any]] = None
    ):
        """Initialize daemon error.

        Args:
            code: Stable machine-readable error code
            message: Human-readable error message
            data: Additional error context
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data or {}
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to the API error body."""
        error_dict: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data:
            error_dict["data"] = sanitize_error_data(self.data)
        return {"error": error_dict}


class ValidationError(DaemonError):
    """Invalid request parameter (400)."""

    status = 400

    def __init__(
        self,
        parameter: str,
        message: str,
        value: Any = None,
        suggestions: Optional[List[str]] = None,
    ):
        """Initialize validation error.

        Args:
            parameter: Name of the invalid parameter
            message: Specific validation error message
            value: The invalid value that caused the error
            suggestions: List of suggested valid values
        """
        data = {"parameter": parameter}
        if value is not None:
            data["value"] = str(value)
        if suggestions:
            data["suggestions"] = suggestions

        super().__init__(
            code="validation_error",
            message=f"Invalid parameter '{parameter}': {message}",
            data=data,
        )


class ResourceNotFoundError(DaemonError):
    """Unknown descriptor, source or route (404)."""

    status = 404

    def __init__(self, resource_type: str, identifier: str):
        """Initialize resource not found error.

        Args:
            resource_type: Type of resource (descriptor, source, etc.)
            identifier: Resource identifier that was not found
        """
        super().__init__(
            code="not_found",
            message=f"{resource_type.title()} '{identifier}' not found",
            data={"resource_type": resource_type, "identifier": identifier},
        )


class SyncInProgressError(DaemonError):
    """A sync for the same key is still running (409)."""

    status = 409

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            code="sync_in_progress",
            message=f"Sync already in progress for: {key}",
            data={"key": key},
        )


class SyncTimeoutError(DaemonError):
    """A sync exceeded its time ceiling (504)."""

    status = 504

    def __init__(self, key: str, timeout_seconds: float):
        self.key = key
        super().__init__(
            code="sync_timeout",
            message=f"Sync for {key} timed out after {timeout_seconds}s",
            data={"key": key, "timeout_seconds": timeout_seconds},
        )


class SourceFetchError(DaemonError):
    """A spec could not be fetched or decoded (502)."""

    status = 502

    def __init__(self, source_id: str, reason: str):
        super().__init__(
            code="source_fetch_failed",
            message=f"Failed to fetch spec for source '{source_id}': {reason}",
            data={"source": source_id, "reason": reason},
        )


def sanitize_error_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize error data to remove sensitive information.

    Args:
        data: Raw error data dictionary

    Returns:
        Sanitized error data safe for client consumption
    """
    sensitive_keys = {"password", "token", "secret", "auth", "credential"}

    sanitized = {}
    for key, value in data.items():
        if any(sensitive in key.lower() for sensitive in sensitive_keys):
            continue

        if isinstance(value, dict):
            sanitized[key] = sanitize_error_data(value)
        elif isinstance(value, str) and len(value) > 500:
            sanitized[key] = value[:500] + "... (truncated)"
        else:
            sanitized[key] = value

    return sanitized
