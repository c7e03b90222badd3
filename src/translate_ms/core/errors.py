"""
Error codes and exceptions surfaced to API callers.

Every error the UI can see carries a stable ``code`` plus a human-readable
``message``. Provider response bodies and stack traces stay in the logs.

    INVALID_INPUT        400  empty/oversized text, bad language or quality
    CONFIGURATION_ERROR  500  no credential resolvable for a provider
    PROVIDER_FAILED      502  upstream failed after retries
    FALLBACK_EXHAUSTED   502  both speech providers failed
    INTERNAL_ERROR       500  anything unexpected
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Standardized error codes for API responses."""
    INVALID_INPUT = "INVALID_INPUT"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    PROVIDER_FAILED = "PROVIDER_FAILED"
    FALLBACK_EXHAUSTED = "FALLBACK_EXHAUSTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


HTTP_STATUS = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.CONFIGURATION_ERROR: 500,
    ErrorCode.PROVIDER_FAILED: 502,
    ErrorCode.FALLBACK_EXHAUSTED: 502,
    ErrorCode.INTERNAL_ERROR: 500,
}


class GatewayError(Exception):
    """
    Base exception for gateway errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Optional extra context safe to show to clients.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        """Standardized error response body."""
        result = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class InvalidInputError(GatewayError):
    """Rejected before any cache lookup or network call."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class ConfigurationError(GatewayError):
    """No credential could be resolved for a provider."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ProviderFailedError(GatewayError):
    """An upstream provider kept failing after the retry budget was spent."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.PROVIDER_FAILED, details)


class FallbackExhaustedError(GatewayError):
    """Both speech providers failed."""
    def __init__(self, message: str = "both providers failed", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.FALLBACK_EXHAUSTED, details)
