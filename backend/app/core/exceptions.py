"""
Custom exceptions, the summarization error taxonomy, and global exception handlers.
"""
from enum import Enum
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = None,
    ):
        self.message = message
        self.status_code = status_code
        self.detail = detail or message
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class UnauthorizedError(AppException):
    """Authentication required."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(AppException):
    """Access denied."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class BadRequestError(AppException):
    """Invalid request."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class LLMConnectionError(AppException):
    """LLM server connection error."""

    def __init__(self, message: str = "Failed to connect to the LLM server"):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)


# =============================================================================
# Summarization error taxonomy
# =============================================================================


class ErrorCode(str, Enum):
    """Stable error codes returned by the summarization workflow."""

    MISSING_INPUT = "MISSING_INPUT"
    INVALID_URL = "INVALID_URL"
    SESSION_INVALID = "SESSION_INVALID"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    VIDEO_METADATA_UNAVAILABLE = "VIDEO_METADATA_UNAVAILABLE"
    VIDEO_NOT_FOUND = "VIDEO_NOT_FOUND"
    TRANSCRIPT_UNAVAILABLE = "TRANSCRIPT_UNAVAILABLE"
    AI_SERVICE_ERROR = "AI_SERVICE_ERROR"
    CREDIT_UPDATE_FAILED = "CREDIT_UPDATE_FAILED"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"
    UNEXPECTED = "UNEXPECTED"


# (user-facing message, HTTP status) per error code
ERROR_MESSAGES: dict[ErrorCode, tuple[str, int]] = {
    ErrorCode.MISSING_INPUT: (
        "Please enter a YouTube URL and sign in to summarize videos.",
        status.HTTP_400_BAD_REQUEST,
    ),
    ErrorCode.INVALID_URL: (
        "Please enter a valid YouTube URL.",
        status.HTTP_400_BAD_REQUEST,
    ),
    ErrorCode.SESSION_INVALID: (
        "Your session is invalid or has expired. Please sign in again.",
        status.HTTP_401_UNAUTHORIZED,
    ),
    ErrorCode.INSUFFICIENT_CREDITS: (
        "You don't have enough credits. Please purchase more credits.",
        status.HTTP_402_PAYMENT_REQUIRED,
    ),
    ErrorCode.VIDEO_METADATA_UNAVAILABLE: (
        "Unable to retrieve video information. Please try again later.",
        status.HTTP_502_BAD_GATEWAY,
    ),
    ErrorCode.VIDEO_NOT_FOUND: (
        "The video could not be found. Please check the URL and try again.",
        status.HTTP_404_NOT_FOUND,
    ),
    ErrorCode.TRANSCRIPT_UNAVAILABLE: (
        "Transcript not available for this video. The video may not have captions enabled.",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    ),
    ErrorCode.AI_SERVICE_ERROR: (
        "Unable to generate summary. Please try again later.",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    ),
    ErrorCode.CREDIT_UPDATE_FAILED: (
        "Failed to update your credits. Please try again.",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    ),
    ErrorCode.PERSISTENCE_FAILED: (
        "Your summary was generated but could not be saved.",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    ),
    ErrorCode.UNEXPECTED: (
        "An unexpected error occurred. Please try again.",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    ),
}


def user_message_for(code: ErrorCode) -> str:
    """Return the stable user-facing message for an error code."""
    return ERROR_MESSAGES[code][0]


class SummarizationError(AppException):
    """
    Failure of one step of the summarization workflow.

    Raw provider errors never cross a component boundary; they are attached
    as ``cause`` for logging only and never rendered to the caller.
    """

    error_code: ErrorCode = ErrorCode.UNEXPECTED

    def __init__(
        self,
        error_code: Optional[ErrorCode] = None,
        cause: Optional[BaseException] = None,
    ):
        if error_code is not None:
            self.error_code = error_code
        self.cause = cause
        message, status_code = ERROR_MESSAGES[self.error_code]
        super().__init__(message, status_code)


class VideoMetadataUnavailableError(SummarizationError):
    error_code = ErrorCode.VIDEO_METADATA_UNAVAILABLE


class VideoNotFoundError(SummarizationError):
    error_code = ErrorCode.VIDEO_NOT_FOUND


class TranscriptUnavailableError(SummarizationError):
    """Every transcript strategy was exhausted; ``cause`` is the last strategy error."""

    error_code = ErrorCode.TRANSCRIPT_UNAVAILABLE


class AIServiceError(SummarizationError):
    error_code = ErrorCode.AI_SERVICE_ERROR


class InsufficientCreditsError(SummarizationError):
    error_code = ErrorCode.INSUFFICIENT_CREDITS


class CreditUpdateFailedError(SummarizationError):
    error_code = ErrorCode.CREDIT_UPDATE_FAILED


class PersistenceFailedError(SummarizationError):
    error_code = ErrorCode.PERSISTENCE_FAILED


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions."""
    content = {"detail": exc.detail, "message": exc.message}
    if isinstance(exc, SummarizationError):
        content["error_code"] = exc.error_code.value
    return JSONResponse(status_code=exc.status_code, content=content)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle validation errors with user-friendly messages."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        msg = error["msg"]
        errors.append(f"{field}: {msg}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "There is a problem with the submitted data",
            "errors": errors,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "A server error occurred. Please try again later.",
        },
    )
