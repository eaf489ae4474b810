"""Tests for OpenAI error classification."""
import pytest

from utils.llm_error_handler import (
    LLMErrorType,
    LLMServiceException,
    classify_llm_exception,
    handle_llm_error,
)


@pytest.mark.parametrize("message, expected", [
    ("You exceeded your current quota, please check your plan and billing details.", LLMErrorType.QUOTA_EXCEEDED),
    ("Error code: 429 - insufficient_quota", LLMErrorType.QUOTA_EXCEEDED),
    ("This model's maximum context length is 128000 tokens", LLMErrorType.CONTEXT_LENGTH),
    ("Rate limit reached for gpt-4o", LLMErrorType.RATE_LIMIT),
    ("503 Service Unavailable", LLMErrorType.SERVICE_UNAVAILABLE),
    ("Request timed out.", LLMErrorType.SERVICE_UNAVAILABLE),
    ("Incorrect API key provided", LLMErrorType.AUTHENTICATION),
    ("something odd", LLMErrorType.UNKNOWN),
])
def test_classify_by_message(message, expected):
    assert classify_llm_exception(RuntimeError(message)) == expected


@pytest.mark.parametrize("error_type, status_code", [
    (LLMErrorType.RATE_LIMIT, 429),
    (LLMErrorType.QUOTA_EXCEEDED, 402),
    (LLMErrorType.SERVICE_UNAVAILABLE, 503),
    (LLMErrorType.AUTHENTICATION, 401),
    (LLMErrorType.CONTEXT_LENGTH, 400),
    (LLMErrorType.UNKNOWN, 500),
])
def test_status_codes(error_type, status_code):
    messages = {
        LLMErrorType.RATE_LIMIT: "rate limit",
        LLMErrorType.QUOTA_EXCEEDED: "insufficient_quota",
        LLMErrorType.SERVICE_UNAVAILABLE: "bad gateway",
        LLMErrorType.AUTHENTICATION: "unauthorized",
        LLMErrorType.CONTEXT_LENGTH: "context_length_exceeded",
        LLMErrorType.UNKNOWN: "???",
    }
    error = handle_llm_error(RuntimeError(messages[error_type]), context="classification")
    assert error.error_type == error_type
    assert error.status_code == status_code
    assert error.details.startswith("classification - RuntimeError")


def test_retry_after_defaults_to_30():
    error = handle_llm_error(RuntimeError("rate limit exceeded"))
    assert error.retry_after == 30


def test_retry_after_parsed_from_message():
    error = handle_llm_error(RuntimeError("Rate limit reached. Please try again in 1.5s."))
    assert error.retry_after == 2


def test_retry_after_only_for_rate_limits():
    assert handle_llm_error(RuntimeError("unauthorized")).retry_after is None


def test_service_exception_carries_error():
    llm_error = handle_llm_error(RuntimeError("bad gateway"))
    exc = LLMServiceException(llm_error)
    assert exc.status_code == 503
    assert exc.message == llm_error.message
    assert exc.to_dict()["error_type"] == "service_unavailable"
