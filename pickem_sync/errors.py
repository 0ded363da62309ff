"""
Error types and error response utilities for the pick'em sync engine.

This module defines the exception taxonomy used across the sync pipeline and
the standardized response helpers used by on-demand callers that expect a
plain dictionary back instead of an exception.
"""

import logging
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


class ErrorType:
    """Standard error type constants."""
    VALIDATION = "validation_error"
    TIMEOUT = "timeout_error"
    HTTP = "http_error"
    DATABASE = "database_error"
    NETWORK = "network_error"
    PRECONDITION = "precondition_error"
    UNEXPECTED = "unexpected_error"


class PickemSyncError(Exception):
    """Base class for all sync engine errors."""
    error_type = ErrorType.UNEXPECTED


class TransportError(PickemSyncError):
    """A single HTTP attempt failed (network error, timeout or non-2xx status)."""
    error_type = ErrorType.NETWORK

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        if status_code is not None:
            super().__init__(f"HTTP {status_code}: {message}")
        else:
            super().__init__(message)


class ExhaustedRetries(PickemSyncError):
    """Every attempt of one logical request failed."""
    error_type = ErrorType.NETWORK

    def __init__(self, operation: str, attempts: int, last_error: BaseException):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed after {attempts} attempts: {last_error}"
        )


class MalformedRecord(PickemSyncError):
    """A fetched game lacks two distinguishable competitors."""
    error_type = ErrorType.VALIDATION


class TeamResolutionFailure(PickemSyncError):
    """A competitor descriptor cannot be resolved to a usable team."""
    error_type = ErrorType.VALIDATION


class DuplicateGameError(PickemSyncError):
    """A game with the same season/week/home/away key already exists."""
    error_type = ErrorType.DATABASE


class StorageError(PickemSyncError):
    """The backing store failed to read or write."""
    error_type = ErrorType.DATABASE


class NoCurrentSeasonError(PickemSyncError):
    """No season is flagged as current in storage."""
    error_type = ErrorType.PRECONDITION


class SyncDeadlineExceeded(PickemSyncError):
    """A sync run hit its caller-supplied deadline before finishing."""
    error_type = ErrorType.TIMEOUT

    def __init__(self, deadline: float, result):
        self.deadline = deadline
        self.result = result
        super().__init__(
            f"Sync deadline of {deadline:.1f}s exceeded "
            f"(created={result.created}, updated={result.updated})"
        )


def create_error_response(
    error_message: str,
    error_type: str = ErrorType.UNEXPECTED,
    data: Optional[Dict[str, Any]] = None,
    success: bool = False
) -> Dict[str, Any]:
    """
    Create a standardized error response.

    Args:
        error_message: Human-readable error description
        error_type: Type of error (see ErrorType constants)
        data: Operation-specific data to include in response
        success: Whether the operation was successful

    Returns:
        Standardized error response dictionary
    """
    response = {
        "success": success,
        "error": error_message,
        "error_type": error_type
    }

    if data:
        response.update(data)

    if not success:
        logger.error(f"Error ({error_type}): {error_message}")

    return response


def create_success_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a standardized success response.

    Args:
        data: Operation-specific data to include in response

    Returns:
        Standardized success response dictionary
    """
    response = {
        "success": True,
        "error": None,
        "error_type": None
    }
    response.update(data)
    return response


def error_response_from_exception(
    exc: BaseException,
    data: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Map an exception onto a standardized error response."""
    error_type = getattr(exc, "error_type", ErrorType.UNEXPECTED)
    return create_error_response(str(exc), error_type, data)
