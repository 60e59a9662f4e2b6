"""
Custom error classes for the Control Tower overview service.

Hierarchy:
    ControlTowerError
    ├── InvalidRangeError     (malformed or missing report window -> HTTP 400)
    └── CollaboratorError     (one upstream call failed; folded into a SourceResult)

Only InvalidRangeError ever reaches the HTTP layer. Collaborator failures are
captured by the source gateway and reported per module, never raised to callers.
"""

from typing import Any, Dict, Optional


class ControlTowerError(Exception):
    """Base exception for all Control Tower errors."""

    status_code = 500

    def __init__(self, message: str, code: str = "UNKNOWN", details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class InvalidRangeError(ControlTowerError):
    """The requested report window is missing or cannot be parsed."""

    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message, code="INVALID_RANGE", details=details)


class CollaboratorError(ControlTowerError):
    """An upstream collaborator call failed (transport, status or parse)."""

    status_code = 502

    def __init__(self, path: str, status: int = 0, reason: str = ""):
        self.path = path
        self.status = status
        self.reason = reason
        message = reason or (f"HTTP {status}" if status else "request failed")
        super().__init__(
            message,
            code="COLLABORATOR_FAILED",
            details={"path": path, "status": status},
        )
