"""
Tests for exception hierarchy and error classification.
"""

import pytest

from core.errors.exceptions import (
    AuthError,
    CloseError,
    DecodeError,
    ErrorCategory,
    HandlerError,
    PermanentError,
    PipelineError,
    SerializationError,
    TransientError,
    TransportError,
    UnknownEventTypeError,
    classify_exception,
    wrap_exception,
)


class TestPipelineError:
    """Test base PipelineError class."""

    def test_basic_error(self):
        err = PipelineError("Something went wrong")
        assert err.message == "Something went wrong"
        assert err.cause is None
        assert err.context == {}
        assert err.category == ErrorCategory.UNKNOWN
        assert str(err) == "Something went wrong"

    def test_error_with_cause(self):
        cause = ValueError("Invalid value")
        err = PipelineError("Wrapper message", cause=cause)
        assert err.cause is cause
        assert str(err) == "Wrapper message | Caused by: Invalid value"

    def test_unknown_is_retryable(self):
        assert PipelineError("x").is_retryable


class TestCategories:
    @pytest.mark.parametrize(
        "error,category,retryable",
        [
            (TransientError("x"), ErrorCategory.TRANSIENT, True),
            (AuthError("x"), ErrorCategory.AUTH, True),
            (PermanentError("x"), ErrorCategory.PERMANENT, False),
            (TransportError("x"), ErrorCategory.TRANSIENT, True),
            (DecodeError("x"), ErrorCategory.PERMANENT, False),
            (SerializationError("x"), ErrorCategory.PERMANENT, False),
            (UnknownEventTypeError("LOGOUT"), ErrorCategory.PERMANENT, False),
            (HandlerError("x"), ErrorCategory.UNKNOWN, True),
        ],
    )
    def test_category(self, error, category, retryable):
        assert error.category == category
        assert error.is_retryable is retryable


class TestTransportError:
    def test_topic_added_to_context(self):
        err = TransportError("fetch failed", topic="user-logins", context={"attempt": 2})
        assert err.topic == "user-logins"
        assert err.context == {"attempt": 2, "topic": "user-logins"}

    def test_caller_context_not_mutated(self):
        context = {"attempt": 1}
        TransportError("fetch failed", topic="t", context=context)
        assert context == {"attempt": 1}


class TestUnknownEventTypeError:
    def test_message_and_context(self):
        err = UnknownEventTypeError("LOGOUT")
        assert "no topic registered for event type 'LOGOUT'" in str(err)
        assert err.context == {"event_type": "LOGOUT"}


class TestCloseError:
    def test_for_reader(self):
        cause = OSError("socket closed")
        err = CloseError.for_reader("page-views", cause=cause)
        assert err.message == "failed to close reader for topic page-views"
        assert err.resource == "page-views"
        assert err.cause is cause

    def test_for_writer(self):
        err = CloseError.for_writer("activity-tracker-producer-x")
        assert err.message == "failed to close writer activity-tracker-producer-x"
        assert err.context == {"resource": "activity-tracker-producer-x"}


class TestClassifyException:
    def test_pipeline_error_keeps_category(self):
        assert classify_exception(DecodeError("x")) == ErrorCategory.PERMANENT

    @pytest.mark.parametrize(
        "exc",
        [
            ConnectionRefusedError("Connection refused"),
            TimeoutError("request timeout"),
            OSError("Broken pipe"),
        ],
    )
    def test_transient(self, exc):
        assert classify_exception(exc) == ErrorCategory.TRANSIENT

    def test_auth(self):
        assert classify_exception(RuntimeError("SASL authentication failed")) == ErrorCategory.AUTH

    def test_value_error_permanent(self):
        assert classify_exception(ValueError("bad")) == ErrorCategory.PERMANENT

    def test_other_unknown(self):
        assert classify_exception(RuntimeError("huh")) == ErrorCategory.UNKNOWN


class TestWrapException:
    def test_pipeline_error_returned_with_context(self):
        err = PermanentError("x")
        assert wrap_exception(err, context={"topic": "t"}) is err
        assert err.context == {"topic": "t"}

    def test_transient_wrapped(self):
        cause = ConnectionResetError("Connection reset by peer")
        wrapped = wrap_exception(cause)
        assert isinstance(wrapped, TransientError)
        assert wrapped.cause is cause
        assert wrapped.context["error_type"] == "ConnectionResetError"

    def test_auth_wrapped(self):
        assert isinstance(wrap_exception(RuntimeError("unauthorized")), AuthError)

    def test_permanent_wrapped(self):
        assert isinstance(wrap_exception(TypeError("bad")), PermanentError)

    def test_unknown_uses_default_class(self):
        wrapped = wrap_exception(RuntimeError("huh"), default_class=HandlerError)
        assert isinstance(wrapped, HandlerError)
