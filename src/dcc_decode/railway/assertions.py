"""
Test assertions for Result values.

Usage in tests:
    from dcc_decode.railway import ResultAssertions

    def test_truncated_group():
        result = decode("A")
        ResultAssertions.assert_failure(result, ErrorCode.ENCODING_ERROR, Reason.TRUNCATED_GROUP)
"""

from __future__ import annotations

from typing import Any, TypeVar

from dcc_decode.railway.failure import ErrorCode, FailureDescription, Reason
from dcc_decode.railway.result import Result

T = TypeVar("T")


class ResultAssertions:
    """Expressive test assertions for Result values."""

    @staticmethod
    def assert_success(result: Result[T], message: str = "") -> T:
        """
        Assert the Result is a Success and return the value.

            value = ResultAssertions.assert_success(result)
        """
        context = f" — {message}" if message else ""
        assert result.is_success(), f"Expected Success but got Failure({result.error().describe()}){context}"
        return result.value()

    @staticmethod
    def assert_failure(
        result: Result[T],
        expected_code: ErrorCode | None = None,
        expected_reason: Reason | None = None,
        message: str = "",
    ) -> FailureDescription:
        """
        Assert the Result is a Failure, optionally checking code and reason.

            error = ResultAssertions.assert_failure(result, ErrorCode.SCHEMA_ERROR, Reason.MISSING_FIELD)
        """
        context = f" — {message}" if message else ""
        assert result.is_failure(), f"Expected Failure but got Success({result.value()!r}){context}"
        error = result.error()
        if expected_code is not None:
            assert error.code == expected_code, (
                f"Expected error code {expected_code.value} but got {error.describe()}{context}"
            )
        if expected_reason is not None:
            assert error.reason == expected_reason, (
                f"Expected reason {expected_reason.value} but got {error.describe()}{context}"
            )
        return error

    @staticmethod
    def assert_failure_message_contains(result: Result[T], substring: str) -> None:
        """Assert that the failure message contains the given substring (case-insensitive)."""
        assert result.is_failure(), f"Expected Failure but got Success({result.value()!r})"
        error = result.error()
        assert substring.lower() in error.message.lower(), (
            f"Expected failure message to contain {substring!r} but message was: {error.message!r}"
        )

    @staticmethod
    def assert_success_value(result: Result[T], expected_value: Any) -> None:
        """Assert the Result is a Success with the specific value."""
        value = ResultAssertions.assert_success(result)
        assert value == expected_value, f"Expected success value {expected_value!r} but got {value!r}"
