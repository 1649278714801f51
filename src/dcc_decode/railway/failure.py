"""
Failure description — structured error information for the failure track.

Two levels of classification:
  - ErrorCode names the pipeline LAYER that rejected the input
    (scheme, encoding, envelope, schema, crypto).
  - Reason names the precise cause inside that layer
    (invalid alphabet, truncated group, output too large, ...).

Every failure carries a human-readable message and, where useful,
a small `details` mapping (position, field name, limit) for diagnosis.
"""

from __future__ import annotations

import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, unique
from types import MappingProxyType
from typing import Any, Optional


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track, one per decoding layer.

    The first five map one-to-one to the stages a token passes through;
    the last two cover loading of external inputs and unexpected faults.
    """

    SCHEME_ERROR = "SCHEME_ERROR"
    """Missing or wrong textual prefix."""

    ENCODING_ERROR = "ENCODING_ERROR"
    """Base45, deflate or CBOR input is malformed, truncated or over a limit."""

    ENVELOPE_ERROR = "ENVELOPE_ERROR"
    """COSE_Sign1 structure has the wrong arity or element types."""

    SCHEMA_ERROR = "SCHEMA_ERROR"
    """Certificate payload is missing fields or has mistyped fields."""

    CRYPTO_ERROR = "CRYPTO_ERROR"
    """Unknown key id, unsupported algorithm, unusable key."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Trust list or value set could not be loaded."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unexpected/unclassified failure."""


@unique
class Reason(Enum):
    """Precise cause of a failure, finer-grained than ErrorCode."""

    # scheme
    UNRECOGNIZED_SCHEME = "UnrecognizedScheme"
    # base45
    INVALID_ALPHABET = "InvalidAlphabet"
    TRUNCATED_GROUP = "TruncatedGroup"
    INVALID_GROUP_VALUE = "InvalidGroupValue"
    # deflate
    CORRUPT_STREAM = "CorruptStream"
    OUTPUT_TOO_LARGE = "OutputTooLarge"
    # cbor
    TRUNCATED_INPUT = "TruncatedInput"
    TRAILING_DATA = "TrailingData"
    UNSUPPORTED_ENCODING = "UnsupportedEncoding"
    NESTING_TOO_DEEP = "NestingTooDeep"
    INVALID_ENCODING = "InvalidEncoding"
    # cose
    MALFORMED_ENVELOPE = "MalformedEnvelope"
    DETACHED_PAYLOAD = "DetachedPayload"
    # schema
    MISSING_FIELD = "MissingField"
    SCHEMA_TYPE_MISMATCH = "SchemaTypeMismatch"
    # crypto
    KEY_UNKNOWN = "KeyUnknown"
    UNSUPPORTED_ALGORITHM = "UnsupportedAlgorithm"
    KEY_TYPE_MISMATCH = "KeyTypeMismatch"
    ALGORITHM_MISMATCH = "AlgorithmMismatch"
    SIGNATURE_MISMATCH = "SignatureMismatch"
    # loading
    UNREADABLE_SOURCE = "UnreadableSource"
    INVALID_DOCUMENT = "InvalidDocument"
    # anything else
    UNEXPECTED = "Unexpected"


def _no_details() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor: layer, cause, message, context.

    >>> desc = FailureDescription(ErrorCode.SCHEMA_ERROR, Reason.MISSING_FIELD, "issuer is missing")
    >>> desc.code
    <ErrorCode.SCHEMA_ERROR: 'SCHEMA_ERROR'>
    >>> desc.reason.value
    'MissingField'
    """

    code: ErrorCode
    reason: Reason
    message: str
    details: Mapping[str, Any] = field(default_factory=_no_details)
    exception: Optional[BaseException] = field(default=None, repr=False, compare=False)

    @staticmethod
    def create(
        code: ErrorCode,
        reason: Reason,
        message: str,
        exception: Optional[BaseException] = None,
        **details: Any,
    ) -> FailureDescription:
        """Factory taking the context mapping as keyword arguments."""
        return FailureDescription(
            code=code,
            reason=reason,
            message=message,
            details=MappingProxyType(dict(details)) if details else _no_details(),
            exception=exception,
        )

    def describe(self) -> str:
        """One-line summary: `ENCODING_ERROR/TrailingData: 3 bytes after value`."""
        return f"{self.code.value}/{self.reason.value}: {self.message}"

    def full_stack_trace(self) -> str:
        """Summary followed by the formatted exception chain, if any."""
        if self.exception is None:
            return self.describe()
        tb = "".join(
            traceback.format_exception(type(self.exception), self.exception, self.exception.__traceback__)
        )
        return f"{self.describe()}\n{tb}"


class DecodeFailure(Exception):
    """
    Exception carrier for a FailureDescription.

    Deeply recursive decoders raise this instead of threading a Result
    through every frame; `Result.from_computation` converts it back into
    a Failure at the public boundary, preserving code and reason.
    """

    def __init__(self, failure: FailureDescription) -> None:
        super().__init__(failure.describe())
        self.failure = failure

    @classmethod
    def of(cls, code: ErrorCode, reason: Reason, message: str, **details: Any) -> DecodeFailure:
        return cls(FailureDescription.create(code, reason, message, **details))
