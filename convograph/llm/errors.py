"""Unified error taxonomy for model provider failures."""

from enum import Enum


class LLMErrorCode(str, Enum):
    """Provider-independent failure categories."""

    api_key_invalid = "api_key_invalid"
    api_key_missing = "api_key_missing"
    rate_limit = "rate_limit"
    quota_exceeded = "quota_exceeded"
    model_not_found = "model_not_found"
    network_error = "network_error"
    timeout = "timeout"
    invalid_request = "invalid_request"
    server_error = "server_error"
    unknown = "unknown"


RETRYABLE_CODES = {
    LLMErrorCode.rate_limit,
    LLMErrorCode.network_error,
    LLMErrorCode.timeout,
    LLMErrorCode.server_error,
}

USER_MESSAGES = {
    LLMErrorCode.api_key_invalid: "Authentication failed. Please check your API key in settings.",
    LLMErrorCode.api_key_missing: "API key is missing. Please add your API key in settings.",
    LLMErrorCode.rate_limit: "Rate limit exceeded. Please wait before retrying.",
    LLMErrorCode.quota_exceeded: "API quota exceeded. Please check your account limits.",
    LLMErrorCode.model_not_found: "Model not found. Please select a different model.",
    LLMErrorCode.network_error: "Network error. Check your connection and try again.",
    LLMErrorCode.timeout: "Request timed out. Please try again.",
    LLMErrorCode.invalid_request: "Invalid request. Please check your input and try again.",
    LLMErrorCode.server_error: "Server error. Please try again later.",
}


class LLMError(Exception):
    """A model call failure normalized across providers."""

    def __init__(
        self,
        code: LLMErrorCode,
        message: str,
        status_code: int | None = None,
        provider: str | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.provider = provider
        self.retryable = code in RETRYABLE_CODES if retryable is None else retryable

    @property
    def user_message(self) -> str:
        """Message suitable for showing on the failed node."""
        return USER_MESSAGES.get(self.code) or self.message or "An unknown error occurred."

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "status_code": self.status_code,
            "provider": self.provider,
        }


def code_for_status(status_code: int | None) -> LLMErrorCode:
    """Map an HTTP status code to an error code."""
    if not status_code:
        return LLMErrorCode.network_error
    if status_code in (401, 403):
        return LLMErrorCode.api_key_invalid
    if status_code == 429:
        return LLMErrorCode.rate_limit
    if status_code == 404:
        return LLMErrorCode.model_not_found
    if status_code == 400:
        return LLMErrorCode.invalid_request
    if 500 <= status_code < 600:
        return LLMErrorCode.server_error
    return LLMErrorCode.unknown


def to_llm_error(error: BaseException, provider: str | None = None) -> LLMError:
    """Classify an arbitrary exception raised while calling a provider.

    SDK exceptions expose ``status_code`` (openai, anthropic) or ``status``;
    failures without one are classified by exception name and message.
    """
    if isinstance(error, LLMError):
        return error

    message = str(error) or type(error).__name__
    status_code = getattr(error, "status_code", None) or getattr(error, "status", None)
    if not isinstance(status_code, int):
        status_code = None

    code = code_for_status(status_code) if status_code else LLMErrorCode.unknown

    error_name = type(error).__name__.lower()
    lowered = message.lower()
    if "timeout" in error_name or "timeout" in lowered or "timed out" in lowered:
        code = LLMErrorCode.timeout
    elif status_code is None and any(
        x in error_name or x in lowered for x in ["connection", "network", "econnrefused"]
    ):
        code = LLMErrorCode.network_error
    elif code == LLMErrorCode.rate_limit and "quota" in lowered:
        code = LLMErrorCode.quota_exceeded

    return LLMError(code, message, status_code=status_code, provider=provider)
