"""
Deflate layer — bounded decompression of the Base45 payload.

The payload is a deflate stream. Real-world certificates wrap it in an
RFC 1950 zlib container (2-byte header, Adler-32 trailer); a bare raw
deflate stream is accepted too. Output is produced through a single
`decompressobj.decompress(..., max_length)` call so that a
decompression bomb never materializes more than `max_output + 1` bytes.
"""

from __future__ import annotations

import zlib

import structlog

from dcc_decode.railway import ErrorCode, Reason, Result

log = structlog.get_logger()

DEFAULT_MAX_OUTPUT = 256 * 1024

_RAW_WBITS = -zlib.MAX_WBITS
_ZLIB_WBITS = zlib.MAX_WBITS


def has_zlib_header(data: bytes) -> bool:
    """True if the first two bytes form a valid RFC 1950 header (deflate, no preset dictionary)."""
    if len(data) < 2:
        return False
    cmf, flg = data[0], data[1]
    return (
        cmf & 0x0F == 8
        and cmf >> 4 <= 7
        and not flg & 0x20
        and ((cmf << 8) | flg) % 31 == 0
    )


def inflate(data: bytes, max_output: int = DEFAULT_MAX_OUTPUT) -> Result[bytes]:
    """
    Decompress a deflate stream, refusing to produce more than `max_output` bytes.

    Failures (all ENCODING_ERROR):
      - CorruptStream   — malformed tokens, bad checksum, truncated stream, or bytes after the end
      - OutputTooLarge  — the stream would inflate past `max_output`
    """
    if max_output < 1:
        raise ValueError(f"max_output must be at least 1, got {max_output}")
    wrapped = has_zlib_header(data)
    decompressor = zlib.decompressobj(_ZLIB_WBITS if wrapped else _RAW_WBITS)
    try:
        out = decompressor.decompress(data, max_output + 1)
    except zlib.error as e:
        return Result.failure(
            ErrorCode.ENCODING_ERROR, Reason.CORRUPT_STREAM, f"malformed deflate stream: {e}", e
        )

    if len(out) > max_output:
        return Result.failure(
            ErrorCode.ENCODING_ERROR,
            Reason.OUTPUT_TOO_LARGE,
            f"inflated output exceeds the {max_output}-byte ceiling",
            limit=max_output,
        )
    if not decompressor.eof:
        return Result.failure(
            ErrorCode.ENCODING_ERROR, Reason.CORRUPT_STREAM, "deflate stream ends before its final block"
        )
    if decompressor.unused_data:
        return Result.failure(
            ErrorCode.ENCODING_ERROR,
            Reason.CORRUPT_STREAM,
            f"{len(decompressor.unused_data)} bytes follow the end of the deflate stream",
            trailing=len(decompressor.unused_data),
        )

    log.debug("inflate.complete", zlib_wrapped=wrapped, compressed=len(data), inflated=len(out))
    return Result.success(out)
