"""
Shared error handling for the summarization gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, ConfigDict, Field

from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    model_config = ConfigDict(populate_by_name=True)

    kind: str
    message: str
    retry_after: Optional[int] = Field(default=None, alias="retryAfter")
    trace_id: Optional[str] = None
    details: Dict[str, Any] = {}


class GatewayException(Exception):
    """Base exception for gateway services."""

    status_code = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        retry_after: Optional[float] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.retry_after = retry_after
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            kind=self.code,
            message=self.message,
            retry_after=None if self.retry_after is None else max(1, int(round(self.retry_after))),
            trace_id=trace_id,
            details=self.details
        )


class InvalidInputError(GatewayException):
    """Malformed or empty request text. Terminal for the request."""

    status_code = 400

    def __init__(self, message: str = "Invalid input", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_INPUT", message, details)


class RateLimitError(GatewayException):
    """Client exceeded its request budget."""

    status_code = 429

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__("RATE_LIMITED", message, details, retry_after=retry_after)


class ProviderError(GatewayException):
    """Base class for failures reported by a summarization provider."""

    status_code = 502

    def __init__(
        self,
        code: str,
        provider: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        retry_after: Optional[float] = None,
    ):
        self.provider = provider
        super().__init__(code, f"{provider}: {message}", details, retry_after=retry_after)


class ProviderTransientError(ProviderError):
    """Timeout, 5xx or otherwise retryable provider failure."""

    def __init__(self, provider: str, message: str = "Upstream error", details: Optional[Dict[str, Any]] = None):
        super().__init__("PROVIDER_TRANSIENT", provider, message, details)


class ProviderTimeoutError(ProviderTransientError):
    """Provider did not answer within its timeout."""

    def __init__(self, provider: str, timeout: float):
        super().__init__(provider, f"Timed out after {timeout:.1f}s", {"timeout_seconds": timeout})


class ProviderQuotaExceededError(ProviderError):
    """Provider reported its quota as exhausted."""

    def __init__(
        self,
        provider: str,
        message: str = "Quota exceeded",
        retry_after: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__("PROVIDER_QUOTA_EXCEEDED", provider, message, details, retry_after=retry_after)


class AllProvidersUnavailableError(GatewayException):
    """Every provider failed or was short-circuited and no stale entry existed."""

    status_code = 503

    def __init__(self, message: str = "All summarization providers are unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("ALL_PROVIDERS_UNAVAILABLE", message, details)


class StoreUnavailableError(GatewayException):
    """Shared key-value store could not be reached. Never surfaced to clients."""

    status_code = 503

    def __init__(self, operation: str, message: str = "Shared store unavailable", details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        super().__init__("STORE_UNAVAILABLE", message, details)
