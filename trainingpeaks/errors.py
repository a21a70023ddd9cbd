"""
SDK Errors
==========
Error taxonomy shared by every auth component.

    - ``ValidationError``            bad input shape (never retried)
    - ``ConfigurationError``         malformed SDK configuration
    - ``AuthenticationError``        generic exchange failure
    - ``InvalidCredentialsError``    login UI / API rejected the credentials
    - ``UnsupportedOperationError``  strategy cannot perform the operation
    - ``NetworkError``               timeouts, connection errors
    - ``StorageError``               persistence layer failure
    - ``DeserializationError``       stored payload could not be decoded

Strategies raise these and let the repository attach context
(operation, username) via ``with_context``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

AUTH_FAILED = "AUTH_FAILED"
AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
AUTH_NO_STRATEGY = "AUTH_NO_STRATEGY"
AUTH_UNSUPPORTED_OPERATION = "AUTH_UNSUPPORTED_OPERATION"
CONFIG_INVALID = "CONFIG_INVALID"
NETWORK_REQUEST_FAILED = "NETWORK_REQUEST_FAILED"
NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
STORAGE_FAILED = "STORAGE_FAILED"
SERIALIZATION_FAILED = "SERIALIZATION_FAILED"
VALIDATION_FAILED = "VALIDATION_FAILED"


class SDKError(Exception):
    """Base class for all SDK errors.

    Carries a machine-readable ``code``, a free-form ``context`` dict and
    the optional error that caused it.
    """

    default_code = AUTH_FAILED

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context: Dict[str, Any] = dict(context or {})
        self.original_error = original_error

    def with_context(self, **context: Any) -> "SDKError":
        """Merge *context* into this error and return it (for re-raise)."""
        for key, value in context.items():
            self.context.setdefault(key, value)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in sorted(self.context.items()))
        return f"{self.message} ({details})"


class ValidationError(SDKError):
    default_code = VALIDATION_FAILED

    def __init__(self, message: str, field: Optional[str] = None, **kwargs: Any):
        context = kwargs.pop("context", None) or {}
        if field:
            context["field"] = field
        super().__init__(message, context=context, **kwargs)

    @property
    def field(self) -> Optional[str]:
        return self.context.get("field")


class ConfigurationError(SDKError):
    default_code = CONFIG_INVALID


class AuthenticationError(SDKError):
    default_code = AUTH_FAILED


class InvalidCredentialsError(AuthenticationError):
    """The platform reported the credentials as wrong. Never retried."""

    default_code = AUTH_INVALID_CREDENTIALS


class UnsupportedOperationError(SDKError):
    """Raised so callers can fall back to another strategy."""

    default_code = AUTH_UNSUPPORTED_OPERATION


class NetworkError(SDKError):
    """Transport failure; eligible for caller-level retry."""

    default_code = NETWORK_REQUEST_FAILED


class StorageError(SDKError):
    default_code = STORAGE_FAILED


class DeserializationError(StorageError):
    default_code = SERIALIZATION_FAILED

    def __init__(self, message: str, field: Optional[str] = None, **kwargs: Any):
        context = kwargs.pop("context", None) or {}
        if field:
            context["field"] = field
        super().__init__(message, context=context, **kwargs)
