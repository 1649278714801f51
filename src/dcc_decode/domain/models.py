"""
Domain models — immutable data structures for envelopes, keys, and certificates.

These are pure value objects with no behavior beyond small derived
properties. They represent the data extracted from an HC1 token:

  token → CoseSign1 (envelope) → DccRecord (certificate content)
                               ↘ VerificationOutcome (signature check)

All models are frozen dataclasses (immutable) following functional principles.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from types import MappingProxyType
from typing import Any, Union

from dcc_decode.codec.cbor import CborMap, CborValue
from dcc_decode.railway import Reason

HC1_PREFIX = "HC1:"


class CoseAlgorithm(IntEnum):
    """COSE algorithm identifiers (IANA registry) relevant to health certificates."""

    ES256 = -7
    EDDSA = -8
    ES384 = -35
    ES512 = -36
    PS256 = -37
    PS384 = -38
    PS512 = -39


def algorithm_name(algorithm: int) -> str:
    """`ES256` for known identifiers, the bare number otherwise."""
    try:
        return CoseAlgorithm(algorithm).name
    except ValueError:
        return str(algorithm)


# ─────────────────────── Limits ───────────────────────


@dataclass(frozen=True, slots=True)
class DecodeLimits:
    """Resource ceilings applied to untrusted input."""

    max_inflated_size: int = 256 * 1024
    max_nesting_depth: int = 32

    def __post_init__(self) -> None:
        if self.max_inflated_size < 1:
            raise ValueError(f"max_inflated_size must be at least 1, got {self.max_inflated_size}")
        if self.max_nesting_depth < 1:
            raise ValueError(f"max_nesting_depth must be at least 1, got {self.max_nesting_depth}")


# ─────────────────────── Envelope ───────────────────────


@dataclass(frozen=True, slots=True)
class CoseSign1:
    """
    A parsed COSE_Sign1 message.

    `protected_bytes` is kept verbatim: it is what the signature covers and
    is never re-encoded. `protected_headers` is its decoded form, read only
    for the key id and algorithm labels.
    """

    protected_bytes: bytes = field(repr=False)
    protected_headers: CborMap
    unprotected_headers: CborMap
    payload: bytes | None = field(repr=False)
    signature: bytes = field(repr=False)


# ─────────────────────── Trust ───────────────────────


@dataclass(frozen=True, slots=True)
class TrustedCert:
    """
    A trusted Document Signer key.

    `public_key` is a `cryptography` public key object; `algorithm` is the
    COSE algorithm identifier the key is used with.
    """

    key_id: bytes
    algorithm: int
    public_key: Any = field(repr=False, compare=False)
    country: str | None = None
    subject: str | None = None


# ─────────────────────── Certificate Content ───────────────────────


@dataclass(frozen=True, slots=True)
class Subject:
    """Holder identity (`nam` + `dob`). Names are kept exactly as issued."""

    date_of_birth: str
    family_name: str | None = None
    given_name: str | None = None
    family_name_std: str | None = None
    given_name_std: str | None = None


def _no_extra() -> Mapping[str, CborValue]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class VaccinationStatement:
    """One `v` entry."""

    target: str
    vaccine: str
    product: str
    manufacturer: str
    dose_number: int
    total_doses: int
    date: str
    country: str
    issuer: str
    certificate_id: str
    extra: Mapping[str, CborValue] = field(default_factory=_no_extra, repr=False)

    kind = "v"


@dataclass(frozen=True, slots=True)
class TestStatement:
    """One `t` entry."""

    __test__ = False  # not a pytest test class

    target: str
    test_type: str
    sample_collected_at: str
    result: str
    country: str
    issuer: str
    certificate_id: str
    test_name: str | None = None
    manufacturer: str | None = None
    test_centre: str | None = None
    extra: Mapping[str, CborValue] = field(default_factory=_no_extra, repr=False)

    kind = "t"


@dataclass(frozen=True, slots=True)
class RecoveryStatement:
    """One `r` entry."""

    target: str
    first_positive_result: str
    country: str
    issuer: str
    valid_from: str
    valid_until: str
    certificate_id: str
    extra: Mapping[str, CborValue] = field(default_factory=_no_extra, repr=False)

    kind = "r"


@dataclass(frozen=True, slots=True)
class UnrecognizedStatement:
    """A statement group this decoder does not know, preserved untouched."""

    kind: str
    raw: CborValue = field(repr=False)


Statement = Union[VaccinationStatement, TestStatement, RecoveryStatement, UnrecognizedStatement]


def _utc(seconds: int) -> datetime | None:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


@dataclass(frozen=True, slots=True)
class DccRecord:
    """
    Decoded Digital Covid Certificate.

    `issuer_country`, `issued_at` and `expires_at` come from the CWT claims
    wrapping the certificate; timestamps are epoch seconds.
    """

    version: str
    subject: Subject
    statements: tuple[Statement, ...]
    issuer_country: str
    issued_at: int
    expires_at: int

    @property
    def has_statements(self) -> bool:
        return bool(self.statements)

    @property
    def issued_at_utc(self) -> datetime | None:
        """None when the claim lies outside the range datetime can represent."""
        return _utc(self.issued_at)

    @property
    def expires_at_utc(self) -> datetime | None:
        return _utc(self.expires_at)

    @property
    def unrecognized(self) -> tuple[UnrecognizedStatement, ...]:
        return tuple(s for s in self.statements if isinstance(s, UnrecognizedStatement))


# ─────────────────────── Verification ───────────────────────


@dataclass(frozen=True, slots=True)
class NotAttempted:
    """No trust store was supplied."""


@dataclass(frozen=True, slots=True)
class Valid:
    key_id: bytes


@dataclass(frozen=True, slots=True)
class Invalid:
    """Verification ran (or could not run) and did not confirm the signature."""

    reason: Reason
    message: str


@dataclass(frozen=True, slots=True)
class KeyUnknown:
    """The envelope's key id (None when absent) is not in the trust store."""

    key_id: bytes | None


VerificationOutcome = Union[NotAttempted, Valid, Invalid, KeyUnknown]


@dataclass(frozen=True, slots=True)
class DecodedCertificate:
    """
    The aggregate returned by the decode pipeline:
      token → record + verification outcome (+ envelope header facts)
    """

    record: DccRecord
    outcome: VerificationOutcome
    key_id: bytes | None = None
    algorithm: int | None = None

    @property
    def is_verified(self) -> bool:
        return isinstance(self.outcome, Valid)
