"""
Custom exceptions for the content moderation engine.

The taxonomy separates failures that reject a single item (invalid input),
failures that only degrade one signal (missing model, network trouble) and
failures of an internal dependency (service unavailable).
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException


class ContentModeratorException(Exception):
    """Base exception for all content moderation errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "CONTENT_MODERATOR_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidInputException(ContentModeratorException):
    """Raised when a content item is malformed (bad image buffer, URL without host)."""

    def __init__(
        self,
        message: str,
        field: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="INVALID_INPUT",
            details={**(details or {}), "field": field}
        )


class ModelUnavailableException(ContentModeratorException):
    """Raised when a classifier model or wordlist is not loaded."""

    def __init__(
        self,
        message: str,
        model: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="MODEL_UNAVAILABLE",
            details={**(details or {}), "model": model}
        )


class NetworkFailureException(ContentModeratorException):
    """Raised when fetching remote content fails or times out."""

    def __init__(
        self,
        message: str,
        url: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="NETWORK_FAILURE",
            details={**(details or {}), "url": url}
        )


class ServiceUnavailableException(ContentModeratorException):
    """Raised when an internal dependency of the engine cannot be reached."""

    def __init__(
        self,
        message: str,
        service: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="SERVICE_UNAVAILABLE",
            details={**(details or {}), "service": service}
        )


class ContentTooLargeException(ContentModeratorException):
    """Exception raised when content exceeds size limits."""

    def __init__(
        self,
        message: str = "Content size exceeds limit",
        max_size: int = 0,
        actual_size: int = 0,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="CONTENT_TOO_LARGE",
            details={
                **(details or {}),
                "max_size": max_size,
                "actual_size": actual_size
            }
        )


def create_http_exception(
    exception: ContentModeratorException,
    status_code: Optional[int] = None
) -> HTTPException:
    """
    Convert a moderation exception to a FastAPI HTTPException.

    Args:
        exception: Custom exception instance
        status_code: HTTP status code to return; looked up from
            EXCEPTION_STATUS_MAPPING when omitted

    Returns:
        HTTPException instance
    """
    if status_code is None:
        status_code = EXCEPTION_STATUS_MAPPING.get(type(exception), 500)
    return HTTPException(
        status_code=status_code,
        detail=exception.to_dict()
    )


# Exception to HTTP status code mapping
EXCEPTION_STATUS_MAPPING = {
    InvalidInputException: 400,  # Bad Request
    ModelUnavailableException: 503,  # Service Unavailable
    NetworkFailureException: 502,  # Bad Gateway
    ServiceUnavailableException: 503,  # Service Unavailable
    ContentTooLargeException: 413,  # Payload Too Large
}
