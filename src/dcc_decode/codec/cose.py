"""
COSE_Sign1 envelope (RFC 9052 §4.2) — parsing and Sig_structure rebuild.

    COSE_Sign1 = [
        protected   : bstr .cbor header_map,
        unprotected : header_map,
        payload     : bstr / nil,
        signature   : bstr,
    ]

The message may carry COSE tag 18, optionally inside the CWT tag 61.

The signature covers `["Signature1", protected, external_aad, payload]`.
That structure is rebuilt from the verbatim protected-header bytes and
payload bytes, never from decoded headers, and encoded with cbor2's
canonical encoder (definite lengths, shortest-form heads).
"""

from __future__ import annotations

import cbor2

from dcc_decode.codec import cbor
from dcc_decode.codec.cbor import CborArray, CborBytes, CborMap, CborNull, CborTag, CborValue, kind_name
from dcc_decode.domain.models import CoseSign1
from dcc_decode.railway import ErrorCode, Reason, Result

COSE_SIGN1_TAG = 18
CWT_TAG = 61

HEADER_ALGORITHM = 1
HEADER_KEY_ID = 4

SIGNATURE1_CONTEXT = "Signature1"

_EXPECTED_SHAPE = "[bstr, map, bstr / null, bstr]"


def _malformed(message: str) -> Result[CoseSign1]:
    return Result.failure(ErrorCode.ENVELOPE_ERROR, Reason.MALFORMED_ENVELOPE, message)


def _unwrap_tags(value: CborValue) -> CborValue | None:
    """Strip an optional CWT tag and COSE_Sign1 tag; None if a different tag is present."""
    if isinstance(value, CborTag) and value.tag == CWT_TAG:
        value = value.value
    if isinstance(value, CborTag):
        if value.tag != COSE_SIGN1_TAG:
            return None
        value = value.value
    return value


def parse(value: CborValue, max_depth: int = cbor.DEFAULT_MAX_DEPTH) -> Result[CoseSign1]:
    """
    Parse a decoded CBOR tree into a CoseSign1.

    Any deviation from the 4-element shape, or a protected header that is
    not an encoded map, is ENVELOPE_ERROR/MalformedEnvelope.
    """
    message = _unwrap_tags(value)
    if message is None:
        return _malformed(f"unexpected tag {value.tag} on COSE message")  # type: ignore[union-attr]
    if not isinstance(message, CborArray):
        return _malformed(f"COSE_Sign1 must be an array, got {kind_name(message)}")
    if len(message) != 4:
        return _malformed(f"COSE_Sign1 must have 4 elements, got {len(message)}")

    protected, unprotected, payload, signature = message.items
    if not (
        isinstance(protected, CborBytes)
        and isinstance(unprotected, CborMap)
        and isinstance(payload, (CborBytes, CborNull))
        and isinstance(signature, CborBytes)
    ):
        kinds = ", ".join(kind_name(item) for item in message.items)
        return _malformed(f"COSE_Sign1 elements must be {_EXPECTED_SHAPE}, got [{kinds}]")

    return _decode_protected(protected.value, max_depth).map(
        lambda headers: CoseSign1(
            protected_bytes=protected.value,
            protected_headers=headers,
            unprotected_headers=unprotected,
            payload=payload.value if isinstance(payload, CborBytes) else None,
            signature=signature.value,
        )
    )


def _decode_protected(raw: bytes, max_depth: int) -> Result[CborMap]:
    # a zero-length protected bstr stands for an empty header map
    if not raw:
        return Result.success(CborMap(()))
    decoded = cbor.decode(raw, max_depth)
    if decoded.is_failure():
        return Result.failure(
            ErrorCode.ENVELOPE_ERROR,
            Reason.MALFORMED_ENVELOPE,
            f"protected header is not valid CBOR ({decoded.error().describe()})",
        )
    headers = decoded.value()
    if not isinstance(headers, CborMap):
        return Result.failure(
            ErrorCode.ENVELOPE_ERROR,
            Reason.MALFORMED_ENVELOPE,
            f"protected header must encode a map, got {kind_name(headers)}",
        )
    return Result.success(headers)


def decode_message(data: bytes, max_depth: int = cbor.DEFAULT_MAX_DEPTH) -> Result[CoseSign1]:
    """CBOR-decode `data` and parse it as a COSE_Sign1."""
    return cbor.decode(data, max_depth).flat_map(lambda value: parse(value, max_depth))


def build_sig_structure(envelope: CoseSign1, external_aad: bytes = b"") -> bytes:
    """
    Rebuild the bytes the issuer signed.

    Raises ValueError for a detached payload: the signed content is not in
    the message, so there is nothing to rebuild.
    """
    if envelope.payload is None:
        raise ValueError("cannot build Sig_structure for a detached payload")
    return cbor2.dumps(
        [SIGNATURE1_CONTEXT, envelope.protected_bytes, external_aad, envelope.payload],
        canonical=True,
    )


# ─────────────────────── Header Access ───────────────────────


def key_id(envelope: CoseSign1) -> bytes | None:
    """The `kid` header (label 4): protected bucket first, then unprotected."""
    for headers in (envelope.protected_headers, envelope.unprotected_headers):
        kid = headers.get(HEADER_KEY_ID)
        if isinstance(kid, CborBytes):
            return kid.value
    return None


def algorithm(envelope: CoseSign1) -> int | None:
    """The `alg` header (label 1) from the protected bucket."""
    alg = envelope.protected_headers.get(HEADER_ALGORITHM)
    value = cbor.native_key(alg) if alg is not None else None
    return value if isinstance(value, int) else None
