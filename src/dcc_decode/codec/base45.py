"""
Base45 codec (RFC 9285) — the text layer of an HC1 token.

Every 2 bytes become 3 characters (little-endian base-45 digits), a
trailing single byte becomes 2 characters. The `base45` library does the
decoding; it reports every problem as the same ValueError, so the
alphabet and the group length are checked here first to name the exact
cause. Whatever the library still rejects is a group whose value does
not fit its byte count.
"""

from __future__ import annotations

import base45

from dcc_decode.railway import ErrorCode, Reason, Result

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ $%*+-./:"

_ALPHABET_CHARS = frozenset(ALPHABET)


def _first_invalid(text: str) -> int | None:
    for position, char in enumerate(text):
        if char not in _ALPHABET_CHARS:
            return position
    return None


def decode(text: str) -> Result[bytes]:
    """
    Decode Base45 text into bytes.

    Failures (all ENCODING_ERROR):
      - InvalidAlphabet    — a character outside the 45-char alphabet
      - TruncatedGroup     — final group has exactly one character
      - InvalidGroupValue  — a group encodes a value too large for its byte count
    """
    position = _first_invalid(text)
    if position is not None:
        return Result.failure(
            ErrorCode.ENCODING_ERROR,
            Reason.INVALID_ALPHABET,
            f"character {text[position]!r} at position {position} is not in the Base45 alphabet",
            position=position,
        )
    if len(text) % 3 == 1:
        return Result.failure(
            ErrorCode.ENCODING_ERROR,
            Reason.TRUNCATED_GROUP,
            f"final Base45 group has a single character (length {len(text)})",
            length=len(text),
        )

    try:
        # space is a Base45 digit; bytes reach the library unstripped
        return Result.success(base45.b45decode(text.encode("ascii")))
    except ValueError as e:
        return Result.failure(
            ErrorCode.ENCODING_ERROR,
            Reason.INVALID_GROUP_VALUE,
            "a Base45 group decodes to a value out of range for its byte count",
            e,
        )
