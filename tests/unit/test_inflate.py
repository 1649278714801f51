"""
Unit tests for bounded decompression.

Both framings are accepted (zlib-wrapped and raw deflate); anything that
is not exactly one complete stream is CorruptStream, and output above the
ceiling is OutputTooLarge without being materialized.
"""

from __future__ import annotations

import zlib

import pytest

from dcc_decode.codec.inflate import has_zlib_header, inflate
from dcc_decode.railway import ErrorCode, Reason, ResultAssertions

DATA = b"\xd2\x84" + b"certificate payload " * 20


def _raw_deflate(data: bytes) -> bytes:
    compressor = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
    return compressor.compress(data) + compressor.flush()


class TestInflateSuccess:
    def test_zlib_wrapped_stream(self) -> None:
        """
        GIVEN a zlib-wrapped stream
        WHEN inflate is called
        THEN the original bytes come back.
        """
        ResultAssertions.assert_success_value(inflate(zlib.compress(DATA)), DATA)

    def test_raw_deflate_stream(self) -> None:
        """
        GIVEN a raw deflate stream without zlib header
        WHEN inflate is called
        THEN the original bytes come back.
        """
        ResultAssertions.assert_success_value(inflate(_raw_deflate(DATA)), DATA)

    def test_output_exactly_at_ceiling_is_accepted(self) -> None:
        """
        GIVEN a stream inflating to exactly max_output bytes
        WHEN inflate is called with that ceiling
        THEN it succeeds.
        """
        data = b"x" * 4096
        ResultAssertions.assert_success_value(inflate(zlib.compress(data), max_output=4096), data)


class TestInflateFailures:
    def test_decompression_bomb_is_rejected(self) -> None:
        """
        GIVEN a tiny stream that would inflate to 10 MiB
        WHEN inflate is called with the default 256 KiB ceiling
        THEN ENCODING_ERROR/OutputTooLarge is returned.
        """
        bomb = zlib.compress(b"\x00" * (10 * 1024 * 1024), 9)
        assert len(bomb) < 20_000

        error = ResultAssertions.assert_failure(inflate(bomb), ErrorCode.ENCODING_ERROR, Reason.OUTPUT_TOO_LARGE)
        assert error.details["limit"] == 256 * 1024

    def test_one_byte_over_ceiling(self) -> None:
        """
        GIVEN a stream inflating to max_output + 1 bytes
        WHEN inflate is called
        THEN OutputTooLarge is returned.
        """
        ResultAssertions.assert_failure(
            inflate(zlib.compress(b"x" * 4097), max_output=4096), expected_reason=Reason.OUTPUT_TOO_LARGE
        )

    @pytest.mark.parametrize("max_output", [0, -1])
    def test_non_positive_ceiling_is_rejected(self, max_output: int) -> None:
        """
        GIVEN a ceiling of zero or less, which zlib would treat as unbounded
        WHEN inflate is called on a bomb
        THEN a ValueError is raised before anything is decompressed.
        """
        bomb = zlib.compress(b"\x00" * (10 * 1024 * 1024), 9)
        with pytest.raises(ValueError, match="max_output must be at least 1"):
            inflate(bomb, max_output=max_output)

    @pytest.mark.parametrize(
        "data",
        [
            pytest.param(b"", id="empty"),
            pytest.param(b"\x78\x9c\xff\xff\xff\xff", id="garbage-after-header"),
            pytest.param(zlib.compress(DATA)[:-6], id="truncated"),
            pytest.param(zlib.compress(DATA) + b"junk", id="trailing-bytes"),
        ],
    )
    def test_corrupt_streams(self, data: bytes) -> None:
        """
        GIVEN a stream that is not exactly one complete deflate stream
        WHEN inflate is called
        THEN ENCODING_ERROR/CorruptStream is returned.
        """
        ResultAssertions.assert_failure(inflate(data), ErrorCode.ENCODING_ERROR, Reason.CORRUPT_STREAM)

    def test_bad_checksum(self) -> None:
        """
        GIVEN a zlib stream whose Adler-32 trailer was altered
        WHEN inflate is called
        THEN CorruptStream is returned.
        """
        stream = bytearray(zlib.compress(DATA))
        stream[-1] ^= 0xFF
        ResultAssertions.assert_failure(inflate(bytes(stream)), expected_reason=Reason.CORRUPT_STREAM)


class TestZlibHeaderDetection:
    @pytest.mark.parametrize("header", [b"\x78\x9c", b"\x78\xda", b"\x78\x01", b"\x48\x89"])
    def test_valid_headers(self, header: bytes) -> None:
        assert has_zlib_header(header)

    @pytest.mark.parametrize("header", [b"", b"\x78", b"\x78\x00", b"\x79\x9c"])
    def test_invalid_headers(self, header: bytes) -> None:
        assert not has_zlib_header(header)
