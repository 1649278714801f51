"""
Minimal deterministic CBOR reader (RFC 8949) producing a tagged-value tree.

Certificates are encoded with definite-length canonical CBOR, so this
reader deliberately supports only that subset:

  major 0/1  unsigned / negative integers up to 64 bits
  major 2/3  definite-length byte / text strings
  major 4/5  definite-length arrays / maps
  major 6    tags (number + nested item)
  major 7    false, true, null, undefined, other simple values,
             half / single / double precision floats

Indefinite-length items are rejected as UnsupportedEncoding. Nesting is
bounded by `max_depth` so adversarial input cannot exhaust the stack, and
a declared length or item count larger than the remaining input is
rejected before anything is allocated for it.

The tree is a closed union of frozen dataclasses; `to_native()` converts
any node into plain Python values for rendering.
"""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Union

from dcc_decode.railway import DecodeFailure, ErrorCode, Reason, Result

DEFAULT_MAX_DEPTH = 32

# ─────────────────────── Value Tree ───────────────────────


@dataclass(frozen=True, slots=True)
class CborUnsigned:
    value: int


@dataclass(frozen=True, slots=True)
class CborNegative:
    """Negative integer; `value` holds the decoded (negative) number, i.e. -1 - n."""

    value: int


@dataclass(frozen=True, slots=True)
class CborBytes:
    value: bytes


@dataclass(frozen=True, slots=True)
class CborText:
    value: str


@dataclass(frozen=True, slots=True)
class CborArray:
    items: tuple[CborValue, ...]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[CborValue]:
        return iter(self.items)


@dataclass(frozen=True, slots=True)
class CborMap:
    """
    Ordered key/value pairs exactly as they appeared on the wire.

    Duplicate keys are kept; `get` returns the first match.
    """

    entries: tuple[tuple[CborValue, CborValue], ...]

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, key: int | str) -> CborValue | None:
        """Look up an integer or text key."""
        for entry_key, entry_value in self.entries:
            plain = native_key(entry_key)
            if type(plain) is type(key) and plain == key:
                return entry_value
        return None

    def keys(self) -> list[CborValue]:
        return [key for key, _ in self.entries]


@dataclass(frozen=True, slots=True)
class CborTag:
    tag: int
    value: CborValue


@dataclass(frozen=True, slots=True)
class CborBool:
    value: bool


@dataclass(frozen=True, slots=True)
class CborNull:
    pass


@dataclass(frozen=True, slots=True)
class CborUndefined:
    pass


@dataclass(frozen=True, slots=True)
class CborFloat:
    value: float


@dataclass(frozen=True, slots=True)
class CborSimple:
    """An unassigned simple value (0..19, 32..255)."""

    number: int


CborValue = Union[
    CborUnsigned,
    CborNegative,
    CborBytes,
    CborText,
    CborArray,
    CborMap,
    CborTag,
    CborBool,
    CborNull,
    CborUndefined,
    CborFloat,
    CborSimple,
]

_KIND_NAMES: dict[type, str] = {
    CborUnsigned: "unsigned integer",
    CborNegative: "negative integer",
    CborBytes: "byte string",
    CborText: "text string",
    CborArray: "array",
    CborMap: "map",
    CborTag: "tag",
    CborBool: "boolean",
    CborNull: "null",
    CborUndefined: "undefined",
    CborFloat: "float",
    CborSimple: "simple value",
}


def kind_name(value: CborValue) -> str:
    """Human-readable kind of a node, used in mismatch messages."""
    return _KIND_NAMES[type(value)]


def native_key(key: CborValue) -> Any:
    """Map keys as plain Python scalars (int / str); other key kinds are returned unchanged."""
    if isinstance(key, (CborUnsigned, CborNegative, CborText)):
        return key.value
    return key


def to_native(value: CborValue) -> Any:
    """
    Convert a node into plain Python values.

    Maps become dicts (non-scalar keys fall back to their repr), tags become
    `{"tag": n, "value": ...}`, undefined becomes None.
    """
    match value:
        case CborUnsigned(v) | CborNegative(v) | CborBytes(v) | CborText(v) | CborBool(v) | CborFloat(v):
            return v
        case CborArray(items):
            return [to_native(item) for item in items]
        case CborMap(entries):
            out: dict[Any, Any] = {}
            for key, item in entries:
                plain_key = native_key(key)
                if not isinstance(plain_key, (int, str)):
                    plain_key = repr(to_native(key))
                out.setdefault(plain_key, to_native(item))
            return out
        case CborTag(tag, inner):
            return {"tag": tag, "value": to_native(inner)}
        case CborSimple(number):
            return {"simple": number}
        case _:
            return None


# ─────────────────────── Reader ───────────────────────

_MAJOR_BYTES = 2
_MAJOR_TEXT = 3
_MAJOR_ARRAY = 4
_MAJOR_MAP = 5
_MAJOR_SIMPLE = 7

_INDEFINITE = 31

_ARGUMENT_SIZES = {24: 1, 25: 2, 26: 4, 27: 8}
_FLOAT_FORMATS = {25: ">e", 26: ">f", 27: ">d"}


def _encoding_error(reason: Reason, message: str, **details: Any) -> DecodeFailure:
    return DecodeFailure.of(ErrorCode.ENCODING_ERROR, reason, message, **details)


class _Reader:
    """Single-use cursor over one CBOR buffer."""

    def __init__(self, data: bytes, max_depth: int) -> None:
        self._data = data
        self._offset = 0
        self._max_depth = max_depth

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def take(self, count: int) -> bytes:
        if count > self.remaining:
            raise _encoding_error(
                Reason.TRUNCATED_INPUT,
                f"need {count} bytes at offset {self._offset}, only {self.remaining} left",
                offset=self._offset,
            )
        chunk = self._data[self._offset : self._offset + count]
        self._offset += count
        return chunk

    def read_document(self) -> CborValue:
        if not self._data:
            raise _encoding_error(Reason.TRUNCATED_INPUT, "empty CBOR input", offset=0)
        value = self.read_item(depth=0)
        if self.remaining:
            raise _encoding_error(
                Reason.TRAILING_DATA,
                f"{self.remaining} bytes follow the top-level value at offset {self._offset}",
                offset=self._offset,
                trailing=self.remaining,
            )
        return value

    def read_item(self, depth: int) -> CborValue:
        if depth > self._max_depth:
            raise _encoding_error(
                Reason.NESTING_TOO_DEEP,
                f"nesting exceeds the maximum depth of {self._max_depth}",
                offset=self._offset,
                limit=self._max_depth,
            )
        start = self._offset
        initial = self.take(1)[0]
        major, info = initial >> 5, initial & 0x1F

        if major == _MAJOR_SIMPLE:
            return self._read_simple(info, start)
        if info == _INDEFINITE:
            if major in (_MAJOR_BYTES, _MAJOR_TEXT, _MAJOR_ARRAY, _MAJOR_MAP):
                raise _encoding_error(
                    Reason.UNSUPPORTED_ENCODING,
                    f"indefinite-length item at offset {start}",
                    offset=start,
                )
            raise _encoding_error(
                Reason.INVALID_ENCODING, f"invalid additional info 31 for major type {major}", offset=start
            )

        argument = self._read_argument(info, start)

        # major 6 (tag) is the fall-through case
        match major:
            case 0:
                return CborUnsigned(argument)
            case 1:
                return CborNegative(-1 - argument)
            case 2:
                return CborBytes(self.take(argument))
            case 3:
                raw = self.take(argument)
                try:
                    return CborText(raw.decode("utf-8"))
                except UnicodeDecodeError as e:
                    raise _encoding_error(
                        Reason.INVALID_ENCODING, f"text string at offset {start} is not valid UTF-8", offset=start
                    ) from e
            case 4:
                self._check_count(argument, 1, start)
                return CborArray(tuple(self.read_item(depth + 1) for _ in range(argument)))
            case 5:
                self._check_count(argument, 2, start)
                entries = []
                for _ in range(argument):
                    key = self.read_item(depth + 1)
                    entries.append((key, self.read_item(depth + 1)))
                return CborMap(tuple(entries))
            case _:
                return CborTag(argument, self.read_item(depth + 1))

    def _read_argument(self, info: int, start: int) -> int:
        if info < 24:
            return info
        size = _ARGUMENT_SIZES.get(info)
        if size is None:
            raise _encoding_error(
                Reason.INVALID_ENCODING, f"reserved additional info {info} at offset {start}", offset=start
            )
        return int.from_bytes(self.take(size), "big")

    def _check_count(self, count: int, min_item_size: int, start: int) -> None:
        """Every item needs at least one byte, so a count larger than the rest of the input is truncated."""
        if count * min_item_size > self.remaining:
            raise _encoding_error(
                Reason.TRUNCATED_INPUT,
                f"container at offset {start} declares {count} items but only {self.remaining} bytes remain",
                offset=start,
            )

    def _read_simple(self, info: int, start: int) -> CborValue:
        if info < 20:
            return CborSimple(info)
        if info == 20:
            return CborBool(False)
        if info == 21:
            return CborBool(True)
        if info == 22:
            return CborNull()
        if info == 23:
            return CborUndefined()
        if info == 24:
            number = self.take(1)[0]
            if number < 32:
                raise _encoding_error(
                    Reason.INVALID_ENCODING, f"two-byte simple value {number} at offset {start}", offset=start
                )
            return CborSimple(number)
        fmt = _FLOAT_FORMATS.get(info)
        if fmt is not None:
            (number,) = struct.unpack(fmt, self.take(struct.calcsize(fmt)))
            return CborFloat(float(number))
        if info == _INDEFINITE:
            raise _encoding_error(Reason.INVALID_ENCODING, f"unexpected break code at offset {start}", offset=start)
        raise _encoding_error(
            Reason.INVALID_ENCODING, f"reserved simple encoding {info} at offset {start}", offset=start
        )


def decode(data: bytes, max_depth: int = DEFAULT_MAX_DEPTH) -> Result[CborValue]:
    """
    Decode exactly one CBOR item spanning all of `data`.

    Failures (all ENCODING_ERROR): TruncatedInput, TrailingData,
    UnsupportedEncoding, NestingTooDeep, InvalidEncoding.
    """
    return Result.from_computation(
        lambda: _Reader(data, max_depth).read_document(),
        ErrorCode.ENCODING_ERROR,
        "Failed to decode CBOR",
    )
