"""
mlservice Runtime - Error Classification

This module defines the error taxonomy shared by every service strategy.
Errors are split by who is at fault so that front-ends can decide how to
report them:

- BadParamError: caller-supplied configuration or arguments are invalid or
  unusable (misuse, recoverable by the caller)
- InternalError: an operation owned by the strategy failed unexpectedly
  (service fault, report upward rather than retry blindly)

Both kinds carry a human-readable message only. Backend-specific diagnostics
travel in the output payload of train/predict, not in these exceptions.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Kinds of service errors."""

    BAD_PARAM = "bad_param"
    INTERNAL = "internal"


class ServiceError(Exception):
    """
    Base exception for all service strategy errors.

    Subclasses fix the error kind and whether the caller can recover by
    correcting its request.
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    recoverable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "error_kind": self.kind.value,
            "message": self.message,
            "recoverable": self.recoverable,
        }

    def to_log_dict(self) -> dict[str, Any]:
        """Convert to dictionary for structured logging extras."""
        return {
            "error_kind": self.kind.value,
            "error_message": self.message,
        }


class BadParamError(ServiceError):
    """
    Invalid or unusable caller-supplied parameters.

    Raised e.g. when the model repository cannot be opened for a
    destructive operation.
    """

    kind = ErrorKind.BAD_PARAM
    recoverable = True


class InternalError(ServiceError):
    """
    Unexpected failure of an operation the strategy is responsible for.

    Raised e.g. when deleting files inside the repository partially failed.
    """

    kind = ErrorKind.INTERNAL
    recoverable = False


# =============================================================================
# Error Builder Functions
# =============================================================================


def bad_param_error(message: str) -> BadParamError:
    """Factory function for creating BadParamError."""
    return BadParamError(message)


def internal_error(message: str) -> InternalError:
    """Factory function for creating InternalError."""
    return InternalError(message)
