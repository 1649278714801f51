"""
DCC schema mapping — CWT claims + eHN health certificate → DccRecord.

Domain layer — pure functions over the CBOR value tree. No I/O.

Payload layout (CWT claims map, integer keys):

    1     iss   issuer country          (text)
    4     exp   expiration time         (int, epoch seconds)
    6     iat   issued at               (int, epoch seconds)
    -260  hcert {1: <DCC map>}

DCC map (text keys, eHN schema 1.x):

    ver   schema version                (text)
    nam   {fn, gn, fnt, gnt}            (map)
    dob   date of birth                 (text, kept as issued)
    v/t/r vaccination / test / recovery statement arrays

Any other key in the DCC map is a statement group this decoder does not
know; it is kept as an UnrecognizedStatement so nothing is silently lost.
"""

from __future__ import annotations

from collections.abc import Callable
from types import MappingProxyType
from typing import Any, TypeVar

from dcc_decode.codec.cbor import (
    CborArray,
    CborMap,
    CborNegative,
    CborText,
    CborUnsigned,
    CborValue,
    kind_name,
    native_key,
)
from dcc_decode.domain.models import (
    DccRecord,
    RecoveryStatement,
    Statement,
    Subject,
    TestStatement,
    UnrecognizedStatement,
    VaccinationStatement,
)
from dcc_decode.railway import DecodeFailure, ErrorCode, Reason, Result

T = TypeVar("T")

CLAIM_ISSUER = 1
CLAIM_EXPIRES_AT = 4
CLAIM_ISSUED_AT = 6
CLAIM_HCERT = -260
HCERT_DCC = 1

_SUBJECT_KEYS = frozenset({"ver", "nam", "dob"})


# ─────────────────────── Field Readers ───────────────────────


def _missing(name: str) -> DecodeFailure:
    return DecodeFailure.of(ErrorCode.SCHEMA_ERROR, Reason.MISSING_FIELD, f"{name} is missing", field=name)


def _mismatch(name: str, expected: str, found: CborValue) -> DecodeFailure:
    return DecodeFailure.of(
        ErrorCode.SCHEMA_ERROR,
        Reason.SCHEMA_TYPE_MISMATCH,
        f"{name}: expected {expected}, found {kind_name(found)}",
        field=name,
        expected=expected,
    )


def _text(value: CborValue, name: str) -> str:
    if not isinstance(value, CborText):
        raise _mismatch(name, "text", value)
    return value.value


def _integer(value: CborValue, name: str) -> int:
    if not isinstance(value, (CborUnsigned, CborNegative)):
        raise _mismatch(name, "integer", value)
    return value.value


def _map(value: CborValue, name: str) -> CborMap:
    if not isinstance(value, CborMap):
        raise _mismatch(name, "map", value)
    return value


def _array(value: CborValue, name: str) -> CborArray:
    if not isinstance(value, CborArray):
        raise _mismatch(name, "array", value)
    return value


def _required(container: CborMap, key: int | str, name: str, read: Callable[[CborValue, str], T]) -> T:
    value = container.get(key)
    if value is None:
        raise _missing(name)
    return read(value, name)


def _optional(container: CborMap, key: str, name: str, read: Callable[[CborValue, str], T]) -> T | None:
    value = container.get(key)
    return None if value is None else read(value, name)


def _extra(entry: CborMap, known: frozenset[str]) -> MappingProxyType[str, CborValue]:
    """Fields of a statement entry that the schema mapping does not name."""
    extra: dict[str, CborValue] = {}
    for key, value in entry.entries:
        plain = native_key(key)
        if isinstance(plain, str) and plain not in known:
            extra.setdefault(plain, value)
    return MappingProxyType(extra)


# ─────────────────────── Statements ───────────────────────

_VACCINATION_KEYS = frozenset({"tg", "vp", "mp", "ma", "dn", "sd", "dt", "co", "is", "ci"})
_TEST_KEYS = frozenset({"tg", "tt", "nm", "ma", "sc", "tr", "tc", "co", "is", "ci"})
_RECOVERY_KEYS = frozenset({"tg", "fr", "co", "is", "df", "du", "ci"})


def _vaccination(entry: CborMap, path: str) -> VaccinationStatement:
    def req(key: str, read: Callable[[CborValue, str], Any] = _text) -> Any:
        return _required(entry, key, f"{path}.{key}", read)

    return VaccinationStatement(
        target=req("tg"),
        vaccine=req("vp"),
        product=req("mp"),
        manufacturer=req("ma"),
        dose_number=req("dn", _integer),
        total_doses=req("sd", _integer),
        date=req("dt"),
        country=req("co"),
        issuer=req("is"),
        certificate_id=req("ci"),
        extra=_extra(entry, _VACCINATION_KEYS),
    )


def _test(entry: CborMap, path: str) -> TestStatement:
    def req(key: str) -> str:
        return _required(entry, key, f"{path}.{key}", _text)

    def opt(key: str) -> str | None:
        return _optional(entry, key, f"{path}.{key}", _text)

    return TestStatement(
        target=req("tg"),
        test_type=req("tt"),
        sample_collected_at=req("sc"),
        result=req("tr"),
        country=req("co"),
        issuer=req("is"),
        certificate_id=req("ci"),
        test_name=opt("nm"),
        manufacturer=opt("ma"),
        test_centre=opt("tc"),
        extra=_extra(entry, _TEST_KEYS),
    )


def _recovery(entry: CborMap, path: str) -> RecoveryStatement:
    def req(key: str) -> str:
        return _required(entry, key, f"{path}.{key}", _text)

    return RecoveryStatement(
        target=req("tg"),
        first_positive_result=req("fr"),
        country=req("co"),
        issuer=req("is"),
        valid_from=req("df"),
        valid_until=req("du"),
        certificate_id=req("ci"),
        extra=_extra(entry, _RECOVERY_KEYS),
    )


_STATEMENT_MAPPERS: dict[str, Callable[[CborMap, str], Statement]] = {
    "v": _vaccination,
    "t": _test,
    "r": _recovery,
}


def _statements(dcc: CborMap) -> list[Statement]:
    statements: list[Statement] = []
    seen: list[Any] = []
    for key, value in dcc.entries:
        plain = native_key(key)
        # duplicate keys: the first occurrence wins
        if plain in _SUBJECT_KEYS or plain in seen:
            continue
        seen.append(plain)
        mapper = _STATEMENT_MAPPERS.get(plain) if isinstance(plain, str) else None
        if mapper is None:
            kind = plain if isinstance(plain, str) else repr(plain)
            statements.append(UnrecognizedStatement(kind=kind, raw=value))
            continue
        group = _array(value, plain)
        for index, entry in enumerate(group):
            path = f"{plain}[{index}]"
            statements.append(mapper(_map(entry, path), path))
    return statements


# ─────────────────────── Top Level ───────────────────────


def _subject(dcc: CborMap) -> Subject:
    name = _required(dcc, "nam", "nam", _map)

    def opt(key: str) -> str | None:
        return _optional(name, key, f"nam.{key}", _text)

    return Subject(
        date_of_birth=_required(dcc, "dob", "dob", _text),
        family_name=opt("fn"),
        given_name=opt("gn"),
        family_name_std=opt("fnt"),
        given_name_std=opt("gnt"),
    )


def _do_map(payload: CborValue) -> DccRecord:
    claims = _map(payload, "payload")
    issuer = _required(claims, CLAIM_ISSUER, "issuer", _text)
    expires_at = _required(claims, CLAIM_EXPIRES_AT, "expires_at", _integer)
    issued_at = _required(claims, CLAIM_ISSUED_AT, "issued_at", _integer)
    hcert = _required(claims, CLAIM_HCERT, "hcert", _map)
    dcc = _required(hcert, HCERT_DCC, "dcc", _map)

    return DccRecord(
        version=_required(dcc, "ver", "ver", _text),
        subject=_subject(dcc),
        statements=tuple(_statements(dcc)),
        issuer_country=issuer,
        issued_at=issued_at,
        expires_at=expires_at,
    )


def map_payload(payload: CborValue) -> Result[DccRecord]:
    """
    Map a decoded CWT payload into a DccRecord.

    Failures (SCHEMA_ERROR):
      - MissingField(name)                  — issuer, expires_at, issued_at, hcert, dcc, ...
      - SchemaTypeMismatch(name, expected)  — e.g. issued_at given as text
    """
    return Result.from_computation(
        lambda: _do_map(payload),
        ErrorCode.SCHEMA_ERROR,
        "Failed to map certificate payload",
    )
