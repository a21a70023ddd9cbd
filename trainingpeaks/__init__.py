"""
TrainingPeaks SDK
=================
Authentication session engine for the TrainingPeaks platform.

See ``trainingpeaks.auth`` for the public auth API and
``trainingpeaks.config`` for settings (``TRAININGPEAKS_*`` env vars).
"""

from .config import AuthenticationConfig, SDKConfig, WebAuthConfig, setup_logging
from .errors import (
    AuthenticationError,
    ConfigurationError,
    DeserializationError,
    InvalidCredentialsError,
    NetworkError,
    SDKError,
    StorageError,
    UnsupportedOperationError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "AuthenticationConfig",
    "SDKConfig",
    "WebAuthConfig",
    "setup_logging",
    "SDKError",
    "ValidationError",
    "ConfigurationError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "UnsupportedOperationError",
    "NetworkError",
    "StorageError",
    "DeserializationError",
]
