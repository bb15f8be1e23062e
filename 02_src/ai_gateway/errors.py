"""
Canonical error taxonomy for the AI gateway.

Every provider failure is translated into a GatewayError before it reaches
callers, so they never see vendor-specific exceptions.
"""
import asyncio
from enum import Enum
from typing import Any, Dict, Optional

import httpx

DEFAULT_RETRY_AFTER_SECONDS = 60


class ErrorKind(str, Enum):
    """Vendor-independent error kinds."""

    RATE_LIMIT = "RATE_LIMIT"
    INVALID_REQUEST = "INVALID_REQUEST"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    NETWORK_ERROR = "NETWORK_ERROR"
    API_ERROR = "API_ERROR"


_RETRYABLE_KINDS = {ErrorKind.RATE_LIMIT, ErrorKind.NETWORK_ERROR}

_TRANSPORT_TYPES = (httpx.TransportError, ConnectionError, TimeoutError, asyncio.TimeoutError)
_SDK_TRANSPORT_ERRORS = {"APIConnectionError", "APITimeoutError"}


class GatewayError(Exception):
    """Typed failure raised by the gateway and provider adapters."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        provider: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.provider = provider
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        """Whether the caller may retry without operator action."""
        return self.kind in _RETRYABLE_KINDS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "message": self.message,
            "provider": self.provider,
            "retry_after": self.retry_after,
        }

    def __repr__(self) -> str:
        return (
            f"GatewayError(kind={self.kind.value}, provider={self.provider!r}, "
            f"message={self.message!r}, retry_after={self.retry_after})"
        )


def _status_code(error: Exception) -> Optional[int]:
    """Extract an HTTP status from httpx or vendor SDK errors."""
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status

    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status

    return None


def _is_transport_error(error: BaseException) -> bool:
    """Walk the exception chain looking for a transport failure.

    Vendor SDKs (openai, anthropic) raise their own APIConnectionError and
    APITimeoutError around the underlying httpx error, so the class name is
    matched as well as the chained cause.
    """
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, _TRANSPORT_TYPES):
            return True
        if any(cls.__name__ in _SDK_TRANSPORT_ERRORS for cls in type(current).__mro__):
            return True
        current = current.__cause__ or current.__context__
    return False


def classify_error(error: Exception, provider: Optional[str] = None) -> GatewayError:
    """
    Translate any exception into a GatewayError.

    Classification order:
    - GatewayError passes through (provider filled in if missing)
    - 429 / "rate limit" -> RATE_LIMIT with default retry-after
    - 400 / "invalid" -> INVALID_REQUEST
    - 402 / "quota" -> QUOTA_EXCEEDED
    - transport errors and timeouts, including SDK wrappers and chained
      causes -> NETWORK_ERROR
    - everything else -> API_ERROR

    Args:
        error: Exception raised by a provider call
        provider: Provider that raised it

    Returns:
        GatewayError
    """
    if isinstance(error, GatewayError):
        if error.provider is None:
            error.provider = provider
        return error

    message = str(error) or type(error).__name__
    lowered = message.lower()
    status = _status_code(error)

    if status == 429 or "rate limit" in lowered:
        return GatewayError(
            ErrorKind.RATE_LIMIT, message, provider, retry_after=DEFAULT_RETRY_AFTER_SECONDS
        )

    if status == 400 or "invalid" in lowered:
        return GatewayError(ErrorKind.INVALID_REQUEST, message, provider)

    if status == 402 or "quota" in lowered:
        return GatewayError(ErrorKind.QUOTA_EXCEEDED, message, provider)

    if _is_transport_error(error):
        return GatewayError(ErrorKind.NETWORK_ERROR, message, provider)

    return GatewayError(ErrorKind.API_ERROR, message, provider)
