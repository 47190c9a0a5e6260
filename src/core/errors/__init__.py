"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- PipelineError hierarchy for typed exceptions
- Classification utilities for error handling
"""

from core.errors.exceptions import (
    AuthError,
    CloseError,
    DecodeError,
    # Enums
    ErrorCategory,
    HandlerError,
    PermanentError,
    # Base classes
    PipelineError,
    SerializationError,
    TransientError,
    TransportError,
    UnknownEventTypeError,
    # Classification utilities
    classify_exception,
    wrap_exception,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "PipelineError",
    "AuthError",
    "TransientError",
    "PermanentError",
    # Domain errors
    "TransportError",
    "DecodeError",
    "SerializationError",
    "UnknownEventTypeError",
    "HandlerError",
    "CloseError",
    # Classification utilities
    "classify_exception",
    "wrap_exception",
]
