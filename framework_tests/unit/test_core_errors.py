"""Tests for the error hierarchy."""

from specstorm.core.errors import (
    ConfigurationError,
    PipeReadError,
    ProcessError,
    ProcessStartupError,
    ServerError,
    SpecstormError,
    SupervisorError,
)


class TestSpecstormError:
    """Test base exception."""

    def test_message_and_details(self):
        """Test message and details are kept."""
        error = SpecstormError("went wrong", details={"pid": 7})

        assert str(error) == "went wrong"
        assert error.message == "went wrong"
        assert error.details == {"pid": 7}

    def test_details_default_to_empty(self):
        """Test details default to an empty dict."""
        assert SpecstormError("x").details == {}


class TestHierarchy:
    """Test exception inheritance."""

    def test_everything_is_a_specstorm_error(self):
        """Test all errors derive from SpecstormError."""
        for error_class in (
            ConfigurationError,
            ProcessError,
            ProcessStartupError,
            PipeReadError,
            SupervisorError,
            ServerError,
        ):
            assert issubclass(error_class, SpecstormError)

    def test_process_errors(self):
        """Test process error subclasses."""
        assert issubclass(ProcessStartupError, ProcessError)
        assert issubclass(PipeReadError, ProcessError)
        assert not issubclass(SupervisorError, ProcessError)

    def test_pipe_read_error_context(self):
        """Test PipeReadError carries pid and stream."""
        error = PipeReadError("read failed", pid=42, stream="stderr")

        assert error.pid == 42
        assert error.stream == "stderr"
        assert error.details == {}
