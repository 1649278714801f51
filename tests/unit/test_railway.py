"""
Unit tests for the railway primitives — Result, FailureDescription, DecodeFailure.
"""

from __future__ import annotations

import pytest

from dcc_decode.railway import (
    DecodeFailure,
    ErrorCode,
    Failure,
    FailureDescription,
    Reason,
    Result,
    ResultAssertions,
    Success,
)


def _fail() -> Result[int]:
    return Result.failure(ErrorCode.ENCODING_ERROR, Reason.TRAILING_DATA, "2 bytes after value", trailing=2)


class TestResultTracks:
    def test_map_and_flat_map_on_success(self) -> None:
        """
        GIVEN Success(21)
        WHEN map and flat_map are chained
        THEN the functions are applied in order.
        """
        result = Result.success(21).map(lambda x: x * 2).flat_map(lambda x: Result.success(str(x)))
        ResultAssertions.assert_success_value(result, "42")

    def test_failure_short_circuits(self) -> None:
        """
        GIVEN a Failure
        WHEN map and flat_map are chained
        THEN no function runs and the first failure is kept.
        """
        calls: list[int] = []
        result = _fail().map(calls.append).flat_map(lambda _: Result.success(1))

        error = ResultAssertions.assert_failure(result, ErrorCode.ENCODING_ERROR, Reason.TRAILING_DATA)
        assert calls == []
        assert error.details["trailing"] == 2

    def test_either_folds_both_tracks(self) -> None:
        assert Result.success(1).either(lambda v: v + 1, lambda e: -1) == 2
        assert _fail().either(lambda v: v + 1, lambda e: e.reason) == Reason.TRAILING_DATA

    def test_ensure(self) -> None:
        error = FailureDescription.create(ErrorCode.SCHEMA_ERROR, Reason.SCHEMA_TYPE_MISMATCH, "negative")
        assert Result.success(1).ensure(lambda v: v > 0, error).is_success()
        assert Result.success(-1).ensure(lambda v: v > 0, error).error() == error

    def test_peek_runs_only_on_matching_track(self) -> None:
        seen: list[object] = []
        Result.success(1).peek(seen.append).peek_failure(seen.append)
        _fail().peek(seen.append).peek_failure(lambda e: seen.append(e.reason))
        assert seen == [1, Reason.TRAILING_DATA]

    def test_get_or_else_and_truthiness(self) -> None:
        assert _fail().get_or_else(7) == 7
        assert Result.success(3).get_or_else(7) == 3
        assert Result.success(False)
        assert not _fail()

    def test_wrong_track_access_raises(self) -> None:
        with pytest.raises(ValueError):
            _fail().value()
        with pytest.raises(ValueError):
            Result.success(1).error()

    def test_success_of_none_is_rejected(self) -> None:
        with pytest.raises(TypeError):
            Success(None)

    def test_pattern_matching(self) -> None:
        match Result.success(5):
            case Success(v):
                assert v == 5
            case Failure(_):
                pytest.fail("expected success")

    def test_failures_compare_by_code_and_reason(self) -> None:
        assert _fail() == _fail()
        assert Result.success(1) == Success(1)


class TestFromComputation:
    def test_decode_failure_keeps_its_description(self) -> None:
        """
        GIVEN a computation raising DecodeFailure(ENCODING_ERROR/NestingTooDeep)
        WHEN wrapped with from_computation under SCHEMA_ERROR
        THEN the original code and reason are preserved.
        """

        def boom() -> int:
            raise DecodeFailure.of(ErrorCode.ENCODING_ERROR, Reason.NESTING_TOO_DEEP, "too deep", limit=3)

        error = ResultAssertions.assert_failure(
            Result.from_computation(boom, ErrorCode.SCHEMA_ERROR, "mapping failed"),
            ErrorCode.ENCODING_ERROR,
            Reason.NESTING_TOO_DEEP,
        )
        assert error.details["limit"] == 3

    def test_other_exceptions_become_unexpected(self) -> None:
        def boom() -> int:
            raise KeyError("x")

        error = ResultAssertions.assert_failure(
            Result.from_computation(boom, ErrorCode.CRYPTO_ERROR, "check failed"),
            ErrorCode.CRYPTO_ERROR,
            Reason.UNEXPECTED,
        )
        assert isinstance(error.exception, KeyError)
        assert "check failed" in error.message
        assert "KeyError" in error.full_stack_trace()


class TestFailureDescription:
    def test_describe(self) -> None:
        desc = FailureDescription.create(ErrorCode.SCHEME_ERROR, Reason.UNRECOGNIZED_SCHEME, "no prefix")
        assert desc.describe() == "SCHEME_ERROR/UnrecognizedScheme: no prefix"
        assert desc.full_stack_trace() == desc.describe()

    def test_details_are_read_only(self) -> None:
        desc = FailureDescription.create(ErrorCode.ENCODING_ERROR, Reason.INVALID_ALPHABET, "bad", position=4)
        with pytest.raises(TypeError):
            desc.details["position"] = 5  # type: ignore[index]

    def test_decode_failure_message(self) -> None:
        failure = DecodeFailure.of(ErrorCode.SCHEMA_ERROR, Reason.MISSING_FIELD, "dob is missing", field="dob")
        assert str(failure) == "SCHEMA_ERROR/MissingField: dob is missing"
        assert failure.failure.details["field"] == "dob"
