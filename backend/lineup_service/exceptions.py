"""
Centralized Exception Handling for the Fantasy Lineup Data Service
Provides the upstream error taxonomy and standardized error responses.
"""
from typing import Optional, Dict, Any
from fastapi import HTTPException, status
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


class AppException(Exception):
    """
    Base exception class for application-specific errors.

    All custom exceptions should inherit from this class to ensure
    consistent error handling and response formatting.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize application exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (default: 500)
            error_code: Machine-readable error code (e.g., "VALIDATION_ERROR")
            details: Additional error details dictionary
        """
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppException):
    """Raised when input validation fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="VALIDATION_ERROR",
            details=details
        )


class NotFoundError(AppException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message += f": {identifier}"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND",
            details={"resource": resource, "identifier": identifier}
        )


class RateLimitExceeded(AppException):
    """
    Raised when a request is refused for rate-limit reasons.

    Covers both the local admission check and an upstream HTTP 429. The
    retrying client treats this type (and only this type) as retryable.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
        service: Optional[str] = None
    ):
        details: Dict[str, Any] = {}
        if retry_after is not None:
            details["retry_after"] = retry_after
        if service:
            details["service"] = service
        self.retry_after = retry_after
        super().__init__(
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error_code="RATE_LIMIT_ERROR",
            details=details
        )


class UpstreamHttpError(AppException):
    """Raised when an upstream API answers with a non-2xx, non-429 response or an unusable body."""

    def __init__(
        self,
        service: str,
        message: str,
        upstream_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        full_message = f"Upstream API error ({service})"
        if upstream_status is not None:
            full_message += f" [HTTP {upstream_status}]"
        full_message += f": {message}"
        self.service = service
        self.upstream_status = upstream_status
        super().__init__(
            message=full_message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="UPSTREAM_HTTP_ERROR",
            details={"service": service, "upstream_status": upstream_status, **(details or {})}
        )


class PlayerDataUnavailable(AppException):
    """Raised when the player catalog cannot be fetched and no valid cache or snapshot exists."""

    def __init__(self, sport: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Unable to fetch player data for {sport} and no valid cache available",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="PLAYER_DATA_UNAVAILABLE",
            details={"sport": sport}
        )


class EnrichmentPartialFailure(AppException):
    """
    Describes one per-player metric that could not be computed.

    Never raised out of the enrichment pipeline: it is built, logged and
    the metric defaults to 0.
    """

    def __init__(self, player_id: str, metric: str, cause: BaseException):
        self.player_id = player_id
        self.metric = metric
        self.cause = cause
        super().__init__(
            message=f"Could not compute {metric} for player {player_id}: {cause}",
            status_code=status.HTTP_200_OK,
            error_code="ENRICHMENT_PARTIAL_FAILURE",
            details={"player_id": player_id, "metric": metric}
        )


def create_error_response(
    exception: AppException,
    include_traceback: bool = False
) -> JSONResponse:
    """
    Create standardized error response from AppException.

    Args:
        exception: AppException instance
        include_traceback: Whether to include traceback in response (default: False for security)

    Returns:
        JSONResponse with standardized error format
    """
    response_data = {
        "error": {
            "code": exception.error_code,
            "message": exception.message,
            "status_code": exception.status_code
        }
    }

    # Add details if present
    if exception.details:
        response_data["error"]["details"] = exception.details

    # Include traceback only in development/debug mode
    if include_traceback:
        import traceback
        response_data["error"]["traceback"] = traceback.format_exc()

    headers = None
    if isinstance(exception, RateLimitExceeded) and exception.retry_after is not None:
        headers = {"Retry-After": str(int(exception.retry_after))}

    return JSONResponse(
        status_code=exception.status_code,
        content=response_data,
        headers=headers
    )


def handle_app_exception(exception: AppException) -> JSONResponse:
    """
    Handle AppException and return standardized response.

    Args:
        exception: AppException instance

    Returns:
        JSONResponse with error details
    """
    logger.error(
        f"AppException: {exception.error_code} - {exception.message}",
        extra={"error_code": exception.error_code, "details": exception.details}
    )
    return create_error_response(exception, include_traceback=False)


def handle_generic_exception(exception: Exception) -> JSONResponse:
    """
    Handle generic exceptions and convert to standardized format.

    Args:
        exception: Generic Exception instance

    Returns:
        JSONResponse with error details
    """
    logger.error(f"Unhandled exception: {str(exception)}", exc_info=True)

    app_exception = AppException(
        message="An unexpected error occurred",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code="INTERNAL_ERROR",
        details={"original_error": str(exception)}
    )

    return create_error_response(app_exception, include_traceback=False)


def handle_http_exception(exception: HTTPException) -> JSONResponse:
    """
    Handle FastAPI HTTPException and convert to standardized format.

    Args:
        exception: HTTPException instance

    Returns:
        JSONResponse with standardized error format
    """
    logger.warning(f"HTTPException: {exception.status_code} - {exception.detail}")

    response_data = {
        "error": {
            "code": "HTTP_ERROR",
            "message": exception.detail,
            "status_code": exception.status_code
        }
    }

    return JSONResponse(
        status_code=exception.status_code,
        content=response_data
    )
