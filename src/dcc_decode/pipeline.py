"""
Pipeline — the ROP pipeline that turns an HC1 token into a decoded certificate.

Domain layer — PURE computation. No I/O, no state kept between calls; the
trust store and verifier are injected and only read.

Decoding stages are connected via flat_map, forming a railway:

  strip "HC1:" prefix
    → Base45 decode
      → inflate (bounded)
        → CBOR decode (depth-bounded)
          → COSE_Sign1 parse
            → payload CBOR decode
              → DCC schema mapping → DccRecord

The first failing stage short-circuits with exactly one failure.

Signature verification runs beside the decoding railway, on the parsed
envelope, and never gates the record: its result is folded into a
VerificationOutcome attached to the successfully decoded certificate.
"""

from __future__ import annotations

import structlog

from dcc_decode.adapters.verifier import CryptographySignatureVerifier
from dcc_decode.codec import base45, cbor, cose
from dcc_decode.codec.inflate import inflate
from dcc_decode.domain.models import (
    HC1_PREFIX,
    CoseSign1,
    DccRecord,
    DecodedCertificate,
    DecodeLimits,
    Invalid,
    KeyUnknown,
    NotAttempted,
    TrustedCert,
    Valid,
    VerificationOutcome,
    algorithm_name,
)
from dcc_decode.domain.ports import KeyResolver, SignatureVerifier
from dcc_decode.domain.schema import map_payload
from dcc_decode.railway import ErrorCode, FailureDescription, Reason, Result

log = structlog.get_logger()

_DEFAULT_LIMITS = DecodeLimits()
_DEFAULT_VERIFIER = CryptographySignatureVerifier()


def strip_prefix(token: str) -> Result[str]:
    """Require the `HC1:` scheme prefix and return the Base45 text after it."""
    if not token.startswith(HC1_PREFIX):
        return Result.failure(
            ErrorCode.SCHEME_ERROR,
            Reason.UNRECOGNIZED_SCHEME,
            f"token must start with {HC1_PREFIX!r}",
            prefix=token[: len(HC1_PREFIX)],
        )
    return Result.success(token[len(HC1_PREFIX) :])


def decode_envelope(token: str, limits: DecodeLimits = _DEFAULT_LIMITS) -> Result[CoseSign1]:
    """Run the token through the prefix, Base45, inflate, CBOR and COSE stages."""
    return (
        strip_prefix(token)
        .flat_map(base45.decode)
        .peek(lambda raw: log.debug("pipeline.base45_decoded", size=len(raw)))
        .flat_map(lambda raw: inflate(raw, limits.max_inflated_size))
        .flat_map(lambda data: cose.decode_message(data, limits.max_nesting_depth))
        .peek(lambda envelope: log.debug("pipeline.envelope_parsed", kid=_kid_text(cose.key_id(envelope))))
    )


def decode_record(envelope: CoseSign1, limits: DecodeLimits = _DEFAULT_LIMITS) -> Result[DccRecord]:
    """Decode the envelope payload and map it onto the certificate schema."""
    if envelope.payload is None:
        return Result.failure(
            ErrorCode.ENVELOPE_ERROR,
            Reason.DETACHED_PAYLOAD,
            "COSE_Sign1 payload is detached (null); nothing to decode",
        )
    return cbor.decode(envelope.payload, limits.max_nesting_depth).flat_map(map_payload)


def verify_envelope(
    envelope: CoseSign1,
    resolver: KeyResolver | None,
    verifier: SignatureVerifier = _DEFAULT_VERIFIER,
) -> VerificationOutcome:
    """
    Check the envelope signature against the trust store.

    Never fails: every problem becomes an outcome value.
      - no resolver                      → NotAttempted
      - key id absent or not trusted     → KeyUnknown
      - header alg differs from the key  → Invalid(AlgorithmMismatch)
      - check cannot run                 → Invalid(UnsupportedAlgorithm / KeyTypeMismatch)
      - signature does not match         → Invalid(SignatureMismatch)
      - signature matches                → Valid
    """
    if resolver is None:
        return NotAttempted()

    kid = cose.key_id(envelope)
    if kid is None:
        return KeyUnknown(key_id=None)
    resolved = resolver.resolve(kid)
    if resolved.is_failure():
        return KeyUnknown(key_id=kid)
    cert = resolved.value()

    header_alg = cose.algorithm(envelope)
    if header_alg is not None and header_alg != cert.algorithm:
        return Invalid(
            Reason.ALGORITHM_MISMATCH,
            f"message is signed with {algorithm_name(header_alg)}, "
            f"trusted key is for {algorithm_name(cert.algorithm)}",
        )
    if envelope.payload is None:
        return Invalid(Reason.DETACHED_PAYLOAD, "detached payload cannot be verified")

    return verifier.verify(cose.build_sig_structure(envelope), envelope.signature, cert).either(
        on_success=lambda ok: _signature_outcome(ok, cert),
        on_failure=lambda err: Invalid(err.reason, err.message),
    )


def _signature_outcome(ok: bool, cert: TrustedCert) -> VerificationOutcome:
    if ok:
        return Valid(key_id=cert.key_id)
    return Invalid(Reason.SIGNATURE_MISMATCH, "signature does not match the trusted key")


def _kid_text(kid: bytes | None) -> str | None:
    return kid.hex() if kid is not None else None


def _assemble(
    envelope: CoseSign1,
    record: DccRecord,
    resolver: KeyResolver | None,
    verifier: SignatureVerifier,
) -> DecodedCertificate:
    if not record.has_statements:
        log.warning("pipeline.no_statements", version=record.version, issuer=record.issuer_country)
    for unrecognized in record.unrecognized:
        log.info("pipeline.unrecognized_statement", kind=unrecognized.kind)

    outcome = verify_envelope(envelope, resolver, verifier)
    if isinstance(outcome, (Invalid, KeyUnknown)):
        log.warning("pipeline.verification_failed", outcome=type(outcome).__name__, kid=_kid_text(cose.key_id(envelope)))

    return DecodedCertificate(
        record=record,
        outcome=outcome,
        key_id=cose.key_id(envelope),
        algorithm=cose.algorithm(envelope),
    )


def decode_token(
    token: str,
    trust_store: KeyResolver | None = None,
    limits: DecodeLimits = _DEFAULT_LIMITS,
    verifier: SignatureVerifier = _DEFAULT_VERIFIER,
) -> Result[DecodedCertificate]:
    """
    Decode an HC1 token and, if a trust store is given, verify its signature.

    Returns Result[DecodedCertificate] on success — including certificates
    whose signature is invalid, which carry an Invalid / KeyUnknown outcome.
    Returns Result.failure with the first failing layer's error otherwise:
    SCHEME_ERROR, ENCODING_ERROR, ENVELOPE_ERROR or SCHEMA_ERROR.
    """
    return (
        decode_envelope(token, limits)
        .flat_map(
            lambda envelope: decode_record(envelope, limits).map(
                lambda record: _assemble(envelope, record, trust_store, verifier)
            )
        )
        .peek(_log_decoded)
        .peek_failure(_log_failure)
    )


def _log_decoded(decoded: DecodedCertificate) -> None:
    log.debug(
        "pipeline.decoded",
        issuer=decoded.record.issuer_country,
        statements=len(decoded.record.statements),
        outcome=type(decoded.outcome).__name__,
    )


def _log_failure(error: FailureDescription) -> None:
    log.info("pipeline.rejected", code=error.code.value, reason=error.reason.value, message=error.message)
