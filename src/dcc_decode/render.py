"""
Rendering — DecodedCertificate → JSON-able document or readable text.

Presentation only: nothing here changes what was decoded. Byte strings are
shown as base64 and timestamps as ISO-8601 UTC, or the raw epoch value when
no date can represent it. Unrecognized statement groups keep their
plain-Python CBOR form.
"""

from __future__ import annotations

import base64
import dataclasses
import json
from datetime import datetime
from typing import Any

from dcc_decode.adapters.valuesets import ValueSetRegistry
from dcc_decode.codec.cbor import to_native
from dcc_decode.domain.models import (
    DecodedCertificate,
    Invalid,
    KeyUnknown,
    NotAttempted,
    RecoveryStatement,
    Statement,
    TestStatement,
    UnrecognizedStatement,
    VaccinationStatement,
    Valid,
    VerificationOutcome,
    algorithm_name,
)


def _jsonable(value: Any) -> Any:
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _key_id(key_id: bytes | None) -> str | None:
    return None if key_id is None else base64.b64encode(key_id).decode("ascii")


def _outcome(outcome: VerificationOutcome) -> dict[str, Any]:
    match outcome:
        case NotAttempted():
            return {"status": "not_attempted"}
        case Valid(key_id):
            return {"status": "valid", "key_id": _key_id(key_id)}
        case Invalid(reason, message):
            return {"status": "invalid", "reason": reason.value, "message": message}
        case KeyUnknown(key_id):
            return {"status": "key_unknown", "key_id": _key_id(key_id)}
    raise TypeError(f"unknown verification outcome {outcome!r}")


def _statement(statement: Statement) -> dict[str, Any]:
    if isinstance(statement, UnrecognizedStatement):
        return {"kind": statement.kind, "raw": _jsonable(to_native(statement.raw))}
    body = {
        f.name: getattr(statement, f.name)
        for f in dataclasses.fields(statement)
        if f.name != "extra"
    }
    if statement.extra:
        body["extra"] = {key: _jsonable(to_native(value)) for key, value in statement.extra.items()}
    return {"kind": statement.kind, **body}


def _timestamp(seconds: int, moment: datetime | None) -> str | int:
    # the raw claim when it cannot be shown as a date
    return moment.isoformat() if moment is not None else seconds


def to_document(decoded: DecodedCertificate) -> dict[str, Any]:
    """A JSON-serializable view of a decoded certificate."""
    record = decoded.record
    subject = record.subject
    return {
        "version": record.version,
        "issuer_country": record.issuer_country,
        "issued_at": _timestamp(record.issued_at, record.issued_at_utc),
        "expires_at": _timestamp(record.expires_at, record.expires_at_utc),
        "subject": {
            "date_of_birth": subject.date_of_birth,
            "family_name": subject.family_name,
            "given_name": subject.given_name,
            "family_name_std": subject.family_name_std,
            "given_name_std": subject.given_name_std,
        },
        "statements": [_statement(s) for s in record.statements],
        "signature": {
            "key_id": _key_id(decoded.key_id),
            "algorithm": None if decoded.algorithm is None else algorithm_name(decoded.algorithm),
            **_outcome(decoded.outcome),
        },
    }


def render_json(decoded: DecodedCertificate) -> str:
    return json.dumps(to_document(decoded), indent=2, ensure_ascii=False)


# ─────────────────────── Text ───────────────────────


def _coded(field: str, code: str, valuesets: ValueSetRegistry | None) -> str:
    display = valuesets.display(field, code) if valuesets is not None else None
    return f"{display} ({code})" if display else code


def _statement_lines(statement: Statement, valuesets: ValueSetRegistry | None) -> list[str]:
    match statement:
        case VaccinationStatement():
            return [
                f"Vaccination {statement.dose_number}/{statement.total_doses} on {statement.date}",
                f"  disease:      {_coded('tg', statement.target, valuesets)}",
                f"  vaccine:      {_coded('vp', statement.vaccine, valuesets)}",
                f"  product:      {_coded('mp', statement.product, valuesets)}",
                f"  manufacturer: {_coded('ma', statement.manufacturer, valuesets)}",
                f"  country:      {statement.country}",
                f"  issuer:       {statement.issuer}",
                f"  certificate:  {statement.certificate_id}",
            ]
        case TestStatement():
            return [
                f"Test sampled {statement.sample_collected_at}",
                f"  disease:      {_coded('tg', statement.target, valuesets)}",
                f"  type:         {statement.test_type}",
                f"  result:       {statement.result}",
                f"  country:      {statement.country}",
                f"  issuer:       {statement.issuer}",
                f"  certificate:  {statement.certificate_id}",
            ]
        case RecoveryStatement():
            return [
                f"Recovery, first positive {statement.first_positive_result}",
                f"  disease:      {_coded('tg', statement.target, valuesets)}",
                f"  valid:        {statement.valid_from} to {statement.valid_until}",
                f"  country:      {statement.country}",
                f"  issuer:       {statement.issuer}",
                f"  certificate:  {statement.certificate_id}",
            ]
        case UnrecognizedStatement(kind):
            return [f"Unrecognized statement group {kind!r}"]
    raise TypeError(f"unknown statement {statement!r}")


def _outcome_line(outcome: VerificationOutcome) -> str:
    match outcome:
        case NotAttempted():
            return "Signature: not checked (no trust list)"
        case Valid(key_id):
            return f"Signature: VALID (kid {_key_id(key_id)})"
        case Invalid(reason, message):
            return f"Signature: INVALID ({reason.value}: {message})"
        case KeyUnknown(key_id):
            kid = _key_id(key_id) or "absent"
            return f"Signature: key unknown (kid {kid})"
    raise TypeError(f"unknown verification outcome {outcome!r}")


def render_text(decoded: DecodedCertificate, valuesets: ValueSetRegistry | None = None) -> str:
    """A readable multi-line summary; coded fields get display names when value sets are given."""
    record = decoded.record
    subject = record.subject
    name = " ".join(part for part in (subject.given_name, subject.family_name) if part) or "(no name)"
    lines = [
        f"Holder:   {name}",
        f"Born:     {subject.date_of_birth}",
        f"Issuer:   {record.issuer_country}",
        f"Issued:   {_timestamp(record.issued_at, record.issued_at_utc)}",
        f"Expires:  {_timestamp(record.expires_at, record.expires_at_utc)}",
        f"Schema:   {record.version}",
    ]
    if not record.has_statements:
        lines.append("No statements")
    for statement in record.statements:
        lines.extend(_statement_lines(statement, valuesets))
    lines.append(_outcome_line(decoded.outcome))
    return "\n".join(lines)
