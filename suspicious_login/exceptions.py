"""Exceptions raised by the training pipeline.

Two kinds reach the caller: ``InsufficientDataException`` when the event log
cannot support a training run yet, and ``ServiceException`` for everything
else that aborts a run. Both carry a user-facing message.
"""

from typing import Any, Dict, Optional


class SuspiciousLoginException(Exception):
    """Base exception for pipeline errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: str = "SUSPICIOUS_LOGIN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class InsufficientDataException(SuspiciousLoginException):
    """Raised when the captured logins cannot support training yet."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="INSUFFICIENT_DATA", details=details)


class ServiceException(SuspiciousLoginException):
    """Raised when training aborts (divergence, broken invariants)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="SERVICE_ERROR", details=details)


class EvaluationUnavailable(SuspiciousLoginException):
    """Raised when a model cannot be evaluated against the given samples."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="NOT_EVALUABLE", details=details)
