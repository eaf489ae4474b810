"""
LLM Error Handler - classification of OpenAI failures

Maps exceptions raised by the OpenAI client to an HTTP status and a
user-facing message:
- Rate limits (429)
- Quota/billing exceeded (402)
- API outages/connection errors (503)
- Authentication errors (401)
- Invalid requests / context length (400)

Usage:
    try:
        response = client.chat.completions.create(...)
    except Exception as e:
        raise LLMServiceException(handle_llm_error(e, context="classification"))
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import openai

from utils.exceptions import ScreenerError
from utils.screener_logger import get_screener_logger

logger = get_screener_logger()


class LLMErrorType(str, Enum):
    """Types of LLM errors"""
    RATE_LIMIT = "rate_limit"
    QUOTA_EXCEEDED = "quota_exceeded"
    SERVICE_UNAVAILABLE = "service_unavailable"
    AUTHENTICATION = "authentication"
    INVALID_REQUEST = "invalid_request"
    CONTEXT_LENGTH = "context_length"
    UNKNOWN = "unknown"


@dataclass
class LLMError:
    """Structured LLM error"""
    error_type: LLMErrorType
    message: str
    status_code: int
    retry_after: Optional[int] = None
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "status_code": self.status_code,
            "retry_after": self.retry_after,
        }


ERROR_MESSAGES = {
    LLMErrorType.RATE_LIMIT: "The AI service is receiving too many requests. Please wait a moment and try again.",
    LLMErrorType.QUOTA_EXCEEDED: "The AI service is temporarily unavailable due to quota limits.",
    LLMErrorType.SERVICE_UNAVAILABLE: "The AI service is temporarily unavailable. Please try again in a few minutes.",
    LLMErrorType.AUTHENTICATION: "Unable to authenticate with the AI service.",
    LLMErrorType.INVALID_REQUEST: "The AI service rejected the request.",
    LLMErrorType.CONTEXT_LENGTH: "The text is too long for the AI service to process.",
    LLMErrorType.UNKNOWN: "An unexpected error occurred with the AI service.",
}

STATUS_CODES = {
    LLMErrorType.RATE_LIMIT: 429,
    LLMErrorType.QUOTA_EXCEEDED: 402,
    LLMErrorType.SERVICE_UNAVAILABLE: 503,
    LLMErrorType.AUTHENTICATION: 401,
    LLMErrorType.INVALID_REQUEST: 400,
    LLMErrorType.CONTEXT_LENGTH: 400,
    LLMErrorType.UNKNOWN: 500,
}


def classify_llm_exception(exception: Exception) -> LLMErrorType:
    """Determine the error type from the exception class, then its text."""
    error_str = str(exception).lower()

    # Quota errors arrive as RateLimitError with an insufficient_quota code
    if "insufficient_quota" in error_str or "exceeded your current quota" in error_str or "billing" in error_str:
        return LLMErrorType.QUOTA_EXCEEDED
    if "context_length" in error_str or "maximum context length" in error_str:
        return LLMErrorType.CONTEXT_LENGTH

    if isinstance(exception, openai.RateLimitError):
        return LLMErrorType.RATE_LIMIT
    if isinstance(exception, (openai.APIConnectionError, openai.InternalServerError)):
        return LLMErrorType.SERVICE_UNAVAILABLE
    if isinstance(exception, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return LLMErrorType.AUTHENTICATION
    if isinstance(exception, (openai.BadRequestError, openai.UnprocessableEntityError)):
        return LLMErrorType.INVALID_REQUEST

    if "rate limit" in error_str or "rate_limit" in error_str:
        return LLMErrorType.RATE_LIMIT
    if "service unavailable" in error_str or "bad gateway" in error_str or "timed out" in error_str:
        return LLMErrorType.SERVICE_UNAVAILABLE
    if "api key" in error_str or "unauthorized" in error_str:
        return LLMErrorType.AUTHENTICATION
    return LLMErrorType.UNKNOWN


def handle_llm_error(exception: Exception, context: Optional[str] = None) -> LLMError:
    """
    Handle and classify an LLM-related exception.

    Args:
        exception: The exception that was raised
        context: Optional description of the failing operation

    Returns:
        LLMError with structured error information
    """
    error_type = classify_llm_exception(exception)
    details = f"{type(exception).__name__}: {exception}"
    if context:
        details = f"{context} - {details}"

    logger.log_error("openai", f"LLM error ({error_type.value}): {details}")

    return LLMError(
        error_type=error_type,
        message=ERROR_MESSAGES[error_type],
        status_code=STATUS_CODES[error_type],
        retry_after=_extract_retry_after(exception) if error_type == LLMErrorType.RATE_LIMIT else None,
        details=details
    )


def _extract_retry_after(exception: Exception) -> int:
    """Extract retry-after seconds from a rate limit message, default 30."""
    match = re.search(r'(?:try again in|retry after)\s+(\d+(?:\.\d+)?)\s*s', str(exception).lower())
    if match:
        return max(1, round(float(match.group(1))))
    return 30


class LLMServiceException(ScreenerError):
    """Exception wrapper for LLM errors with structured data."""

    def __init__(self, llm_error: LLMError):
        self.llm_error = llm_error
        super().__init__(llm_error.message, status_code=llm_error.status_code, detail=llm_error.details)

    def to_dict(self) -> Dict[str, Any]:
        return self.llm_error.to_dict()
