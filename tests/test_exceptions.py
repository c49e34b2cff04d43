"""Tests for ClimaRisk Exception Hierarchy.

Covers:
- Base exception functionality and error codes
- Input, configuration and I/O errors
- Exception serialization
- Exception utilities
"""

import json
from datetime import datetime

import pytest

from climarisk.exceptions import (
    CacheUnavailable,
    ClimaRiskException,
    ConfigurationError,
    DataUnavailable,
    InvalidInput,
    format_exception_chain,
    is_retriable,
)


# ==============================================================================
# Base Exception Tests
# ==============================================================================

class TestClimaRiskException:
    """Tests for base ClimaRiskException."""

    def test_create_basic_exception(self):
        """Can create basic exception with message."""
        exc = ClimaRiskException("Something went wrong")

        assert exc.message == "Something went wrong"
        assert exc.error_code == "CR_CLIMA_RISK_EXCEPTION"
        assert exc.context == {}
        assert isinstance(exc.timestamp, datetime)

    def test_explicit_error_code(self):
        """An explicit error code is kept."""
        exc = ClimaRiskException("boom", error_code="CR_TEST_001", context={"k": 1})

        assert exc.error_code == "CR_TEST_001"
        assert exc.context == {"k": 1}

    def test_str_representation(self):
        """String form carries the code and message."""
        exc = DataUnavailable("archive down")
        assert str(exc) == "[CR_DATA_UNAVAILABLE] - archive down"
        assert "DataUnavailable" in repr(exc)

    def test_to_json(self):
        """Serialises to JSON with type, code and context."""
        exc = InvalidInput("lat out of range", field="lat", value=91.0)
        data = json.loads(exc.to_json())

        assert data["error_type"] == "InvalidInput"
        assert data["error_code"] == "CR_INVALID_INPUT"
        assert data["context"] == {"field": "lat", "value": 91.0}


# ==============================================================================
# Specific errors
# ==============================================================================

class TestSpecificErrors:
    """Tests for the concrete exception classes."""

    def test_invalid_input_is_value_error(self):
        """InvalidInput can be caught as ValueError."""
        with pytest.raises(ValueError):
            raise InvalidInput("bad grid size", field="grid_size", value=0)

    def test_configuration_error_lists_errors(self):
        """ConfigurationError keeps every validation message."""
        exc = ConfigurationError("invalid", errors=["a", "b"])
        assert exc.context["errors"] == ["a", "b"]

    def test_data_unavailable_context(self):
        """DataUnavailable records provider, attempts and cause."""
        cause = ConnectionError("reset")
        exc = DataUnavailable("gave up", provider="weather", attempts=3, cause=cause)

        assert exc.context["provider"] == "weather"
        assert exc.context["attempts"] == 3
        assert exc.context["cause_type"] == "ConnectionError"

    def test_cache_unavailable_context(self):
        """CacheUnavailable records backend and operation."""
        exc = CacheUnavailable("down", backend="redis", operation="get")
        assert exc.context == {"backend": "redis", "operation": "get"}


# ==============================================================================
# Utilities
# ==============================================================================

class TestUtilities:
    """Tests for format_exception_chain and is_retriable."""

    def test_format_exception_chain(self):
        """The chain lists every cause."""
        try:
            try:
                raise ConnectionError("socket closed")
            except ConnectionError as inner:
                raise DataUnavailable("weather unavailable", provider="weather") from inner
        except DataUnavailable as exc:
            text = format_exception_chain(exc)

        assert "[CR_DATA_UNAVAILABLE] - weather unavailable" in text
        assert "ConnectionError: socket closed" in text

    @pytest.mark.parametrize(
        "exc,expected",
        [
            (DataUnavailable("x"), True),
            (CacheUnavailable("x"), True),
            (ConnectionError("x"), True),
            (TimeoutError("x"), True),
            (InvalidInput("x"), False),
            (ConfigurationError("x"), False),
            (KeyError("x"), False),
        ],
    )
    def test_is_retriable(self, exc, expected):
        """Transport failures retry, caller errors do not."""
        assert is_retriable(exc) is expected
