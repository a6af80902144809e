"""Unit tests for provider error classification."""

import pytest

from studcom.core.exceptions import QuotaExceededError, UpstreamAPIError
from studcom.core.llm_provider import wrap_llm_error


class StatusError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.code = code


class TestWrapLlmError:
    @pytest.mark.parametrize("message", [
        "400 Invalid argument: prompt has 14290 tokens",
        "400 Request payload size 4290 exceeds the limit",
        "Invalid argument provided to Gemini: 400 body is 429 bytes too long",
    ])
    def test_429_digits_inside_message_are_not_quota(self, message):
        wrapped = wrap_llm_error(RuntimeError(message))

        assert type(wrapped) is UpstreamAPIError
        assert wrapped.message == f"Gemini API error: {message}"

    @pytest.mark.parametrize("message", [
        "429 Resource has been exhausted (e.g. check quota).",
        "Error embedding content: RESOURCE_EXHAUSTED",
    ])
    def test_quota_messages(self, message):
        assert isinstance(wrap_llm_error(RuntimeError(message)), QuotaExceededError)

    def test_status_attribute_429_is_quota(self):
        wrapped = wrap_llm_error(StatusError("Too many requests", code=429))
        assert isinstance(wrapped, QuotaExceededError)
        assert wrapped.upstream_status == 429

    def test_status_from_cause(self):
        try:
            try:
                raise StatusError("quota", code=429)
            except StatusError as inner:
                raise RuntimeError("model call failed") from inner
        except RuntimeError as outer:
            assert isinstance(wrap_llm_error(outer), QuotaExceededError)

    def test_other_status_is_kept(self):
        wrapped = wrap_llm_error(StatusError("permission denied", code=403), label="Embedding")
        assert type(wrapped) is UpstreamAPIError
        assert wrapped.upstream_status == 403
        assert wrapped.message == "Embedding API error: permission denied"

    def test_already_wrapped_passes_through(self):
        error = UpstreamAPIError("boom", status_code=500)
        assert wrap_llm_error(error) is error
