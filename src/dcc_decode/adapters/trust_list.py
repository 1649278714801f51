"""
Trust-list loader — JSON documents → TrustedCert records.

Adapter layer — reads the file and parses it with pydantic models; key
material is loaded with `cryptography`.

Two published document shapes are understood:

  1. DSC list — {"certificates": [{"certificateType", "country", "kid",
     "rawData", ...}]}, where `rawData` is a base64 DER X.509 certificate.
     Some distributions prepend a detached-signature line to the JSON; a
     first line that does not start with "{" is skipped.

  2. Key map — {"eu_keys": {"<kid b64>": [{"subjectPk": "<b64 SPKI>",
     "keyUsage": [...]}]}}.

The COSE algorithm is derived from the key itself (EC curve or RSA).
Entries that cannot be used (unknown certificate type, undecodable key,
unsupported key type) are skipped with a warning; only an unreadable or
structurally invalid document is a failure.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
from pathlib import Path
from typing import Any

import structlog
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.hazmat.primitives.serialization import load_der_public_key
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dcc_decode.domain.models import CoseAlgorithm, TrustedCert
from dcc_decode.railway import ErrorCode, Reason, Result

log = structlog.get_logger()

SIGNING_CERTIFICATE_TYPES = frozenset({"DSC", "DCC"})

KEY_ID_LENGTH = 8

_EC_ALGORITHMS: dict[type, CoseAlgorithm] = {
    ec.SECP256R1: CoseAlgorithm.ES256,
    ec.SECP384R1: CoseAlgorithm.ES384,
    ec.SECP521R1: CoseAlgorithm.ES512,
}


# ─────────────────────── Document Models ───────────────────────


class DscEntry(BaseModel):
    """One certificate of a DSC list."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    certificate_type: str = Field(default="DSC", alias="certificateType")
    country: str | None = None
    kid: str | None = None
    raw_data: str = Field(alias="rawData")


class DscListDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    certificates: list[DscEntry]


class KeyMapEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    subject_pk: str = Field(alias="subjectPk")
    key_usage: list[str] = Field(default_factory=list, alias="keyUsage")


class KeyMapDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    eu_keys: dict[str, list[KeyMapEntry]]


# ─────────────────────── Key Helpers ───────────────────────


def algorithm_for_key(public_key: Any) -> CoseAlgorithm | None:
    """ES256/384/512 for EC keys by curve, PS256 for RSA, EdDSA for Ed25519; None otherwise."""
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        return _EC_ALGORITHMS.get(type(public_key.curve))
    if isinstance(public_key, rsa.RSAPublicKey):
        return CoseAlgorithm.PS256
    if isinstance(public_key, ed25519.Ed25519PublicKey):
        return CoseAlgorithm.EDDSA
    return None


def derive_key_id(certificate_der: bytes) -> bytes:
    """DCC key id: the first 8 bytes of the SHA-256 of the DER certificate."""
    return hashlib.sha256(certificate_der).digest()[:KEY_ID_LENGTH]


def _b64(text: str) -> bytes:
    return base64.b64decode(text, validate=True)


def _from_dsc(entry: DscEntry) -> TrustedCert | None:
    if entry.certificate_type.upper() not in SIGNING_CERTIFICATE_TYPES:
        log.debug("trust_list.entry_ignored", certificate_type=entry.certificate_type, kid=entry.kid)
        return None
    try:
        der = _b64(entry.raw_data)
        cert = x509.load_der_x509_certificate(der)
        public_key = cert.public_key()
        kid = _b64(entry.kid) if entry.kid else derive_key_id(der)
    except (ValueError, binascii.Error, UnsupportedAlgorithm) as e:
        log.warning("trust_list.entry_skipped", kid=entry.kid, country=entry.country, error=str(e))
        return None

    algorithm = algorithm_for_key(public_key)
    if algorithm is None:
        log.warning("trust_list.unsupported_key", kid=entry.kid, key_type=type(public_key).__name__)
        return None
    return TrustedCert(
        key_id=kid,
        algorithm=algorithm,
        public_key=public_key,
        country=entry.country,
        subject=cert.subject.rfc4514_string(),
    )


def _from_key_map(kid_b64: str, entry: KeyMapEntry) -> TrustedCert | None:
    try:
        kid = _b64(kid_b64)
        public_key = load_der_public_key(_b64(entry.subject_pk))
    except (ValueError, binascii.Error, UnsupportedAlgorithm) as e:
        log.warning("trust_list.entry_skipped", kid=kid_b64, error=str(e))
        return None

    algorithm = algorithm_for_key(public_key)
    if algorithm is None:
        log.warning("trust_list.unsupported_key", kid=kid_b64, key_type=type(public_key).__name__)
        return None
    return TrustedCert(key_id=kid, algorithm=algorithm, public_key=public_key)


# ─────────────────────── Public API ───────────────────────


def _json_body(text: str) -> str:
    """Drop a leading signature line in front of the JSON document, if present."""
    stripped = text.lstrip()
    if stripped.startswith("{"):
        return stripped
    _, _, rest = stripped.partition("\n")
    return rest


def _do_parse(text: str) -> tuple[TrustedCert, ...]:
    document = json.loads(_json_body(text))
    if not isinstance(document, dict):
        raise ValueError("trust list must be a JSON object")

    certs: list[TrustedCert | None]
    if "certificates" in document:
        dsc_list = DscListDocument.model_validate(document)
        certs = [_from_dsc(entry) for entry in dsc_list.certificates]
    elif "eu_keys" in document:
        key_map = KeyMapDocument.model_validate(document)
        certs = [_from_key_map(kid, entry) for kid, entries in key_map.eu_keys.items() for entry in entries]
    else:
        raise ValueError("trust list has neither 'certificates' nor 'eu_keys'")

    usable = tuple(cert for cert in certs if cert is not None)
    log.info("trust_list.parsed", entries=len(certs), usable=len(usable))
    return usable


def parse_trust_list(text: str) -> Result[tuple[TrustedCert, ...]]:
    """
    Parse a trust-list document.

    Returns CONFIGURATION_ERROR/InvalidDocument if the text is not JSON or
    does not have one of the supported shapes.
    """
    try:
        return Result.success(_do_parse(text))
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        return Result.failure(
            ErrorCode.CONFIGURATION_ERROR,
            Reason.INVALID_DOCUMENT,
            f"trust list is not a supported document: {e}",
            e,
        )


def load_trust_list(path: Path) -> Result[tuple[TrustedCert, ...]]:
    """Read and parse a trust-list file; CONFIGURATION_ERROR/UnreadableSource if it cannot be read."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return Result.failure(
            ErrorCode.CONFIGURATION_ERROR,
            Reason.UNREADABLE_SOURCE,
            f"cannot read trust list {path}: {e.strerror or e}",
            e,
            path=str(path),
        )
    return parse_trust_list(text).peek(lambda certs: log.debug("trust_list.loaded", path=str(path), keys=len(certs)))
