"""
Unified exception hierarchy for the activity tracker.

Provides typed exceptions with retry classification so that the consume
loop, the producer and the topic bootstrap can make consistent decisions
about what to retry, what to skip and what to surface.
"""

# Import ErrorCategory from canonical source to avoid duplicate enum issues
# (comparing enums from different classes always returns False)
from core.types import ErrorCategory


class PipelineError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.AUTH,
            ErrorCategory.UNKNOWN,
        )

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Base categories
# =============================================================================


class AuthError(PipelineError):
    """Broker rejected our credentials."""

    category = ErrorCategory.AUTH


class TransientError(PipelineError):
    """Base class for transient/retriable errors."""

    category = ErrorCategory.TRANSIENT


class PermanentError(PipelineError):
    """Base class for permanent/non-retriable errors."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Domain-Specific Errors
# =============================================================================


class TransportError(TransientError):
    """Broker communication failed (fetch, commit, write or admin request)."""

    def __init__(
        self,
        message: str,
        topic: str | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        context = dict(context or {})
        if topic is not None:
            context.setdefault("topic", topic)
        super().__init__(message, cause, context)
        self.topic = topic


class DecodeError(PermanentError):
    """Message bytes do not form a valid user event."""


class SerializationError(PermanentError):
    """Outbound payload could not be encoded to JSON."""


class UnknownEventTypeError(PermanentError):
    """Event type has no registered topic."""

    def __init__(self, event_type: object, cause: Exception | None = None):
        super().__init__(
            f"no topic registered for event type {event_type!r}",
            cause,
            {"event_type": str(event_type)},
        )
        self.event_type = event_type


class HandlerError(PipelineError):
    """Downstream handler raised while processing an event."""


class CloseError(PipelineError):
    """Releasing a reader or writer failed."""

    def __init__(
        self,
        message: str,
        resource: str,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause, {"resource": resource})
        self.resource = resource

    @classmethod
    def for_reader(cls, topic: str, cause: Exception | None = None) -> "CloseError":
        return cls(f"failed to close reader for topic {topic}", topic, cause)

    @classmethod
    def for_writer(cls, client_id: str, cause: Exception | None = None) -> "CloseError":
        return cls(f"failed to close writer {client_id}", client_id, cause)


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_exception(exc: Exception) -> ErrorCategory:
    """Classify an exception into error category."""
    # Already classified
    if isinstance(exc, PipelineError):
        return exc.category

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    # Connection errors
    connection_markers = (
        "connectionerror",
        "connection refused",
        "connection reset",
        "connection aborted",
        "no route to host",
        "network unreachable",
        "name resolution",
        "nobrokersavailable",
        "kafkaconnectionerror",
        "socket",
        "broken pipe",
    )
    if any(m in exc_type or m in exc_str for m in connection_markers):
        return ErrorCategory.TRANSIENT

    if "timeout" in exc_type or "timeout" in exc_str:
        return ErrorCategory.TRANSIENT

    auth_markers = (
        "authentication",
        "sasl",
        "unauthorized",
    )
    if any(m in exc_type or m in exc_str for m in auth_markers):
        return ErrorCategory.AUTH

    if isinstance(exc, (ValueError, TypeError)):
        return ErrorCategory.PERMANENT

    return ErrorCategory.UNKNOWN


def wrap_exception(
    exc: Exception,
    default_class: type = PipelineError,
    context: dict | None = None,
) -> PipelineError:
    """Wrap a generic exception in appropriate PipelineError subclass."""
    if isinstance(exc, PipelineError):
        if context:
            exc.context.update(context)
        return exc

    category = classify_exception(exc)
    context = context or {}
    context.setdefault("error_type", type(exc).__name__)

    if category == ErrorCategory.AUTH:
        return AuthError(str(exc), cause=exc, context=context)

    if category == ErrorCategory.TRANSIENT:
        return TransientError(str(exc), cause=exc, context=context)

    if category == ErrorCategory.PERMANENT:
        return PermanentError(str(exc), cause=exc, context=context)

    return default_class(str(exc), cause=exc, context=context)
