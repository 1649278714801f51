"""
Shared test fixtures and helpers for the dcc-decode test suite.

Most tokens are produced at test time, exactly the way an issuer would:
claims → CBOR (cbor2) → COSE_Sign1 signed with a freshly generated key
(cryptography) → zlib → Base45 (base45) → "HC1:".

Literal tokens, their DSC list and the expected Sig_structure bytes live
in tests/fixtures/ and are resolved with `fixture_path`.
"""

from __future__ import annotations

import zlib
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import base45
import cbor2
import pytest
import structlog
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from dcc_decode.domain.models import CoseAlgorithm, TrustedCert

EC_KID = bytes.fromhex("d919375fc1e7b6b2")
RSA_KID = bytes.fromhex("0123456789abcdef")

FIXTURES_DIR = Path(__file__).parent / "fixtures"

ISSUED_AT = 1622316073  # 2021-05-29T19:21:13Z
EXPIRES_AT = 1643356073  # 2022-01-28T07:47:53Z


# ─────────────────────── Signers ───────────────────────


@dataclass(frozen=True)
class Signer:
    """A Document Signer: private key plus the kid/alg it signs under."""

    kid: bytes
    algorithm: CoseAlgorithm
    private_key: Any

    def sign(self, message: bytes) -> bytes:
        if isinstance(self.private_key, ec.EllipticCurvePrivateKey):
            der = self.private_key.sign(message, ec.ECDSA(hashes.SHA256()))
            r, s = decode_dss_signature(der)
            return r.to_bytes(32, "big") + s.to_bytes(32, "big")
        return self.private_key.sign(
            message,
            padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=32),
            hashes.SHA256(),
        )

    def trusted(self, country: str | None = "DE") -> TrustedCert:
        return TrustedCert(
            key_id=self.kid,
            algorithm=self.algorithm,
            public_key=self.private_key.public_key(),
            country=country,
        )


@lru_cache(maxsize=None)
def ec_signer(kid: bytes = EC_KID) -> Signer:
    return Signer(kid, CoseAlgorithm.ES256, ec.generate_private_key(ec.SECP256R1()))


@lru_cache(maxsize=None)
def rsa_signer(kid: bytes = RSA_KID) -> Signer:
    return Signer(kid, CoseAlgorithm.PS256, rsa.generate_private_key(public_exponent=65537, key_size=2048))


# ─────────────────────── Payload Builders ───────────────────────


def vaccination_entry(**overrides: Any) -> dict[str, Any]:
    entry = {
        "tg": "840539006",
        "vp": "1119349007",
        "mp": "EU/1/20/1528",
        "ma": "ORG-100030215",
        "dn": 2,
        "sd": 2,
        "dt": "2021-05-29",
        "co": "DE",
        "is": "Robert Koch-Institut",
        "ci": "URN:UVCI:01DE/IZ12345A/5CWLU12RNOB9RXSEOP6FG8#W",
    }
    entry.update(overrides)
    return entry


def lab_test_entry(**overrides: Any) -> dict[str, Any]:
    entry = {
        "tg": "840539006",
        "tt": "LP6464-4",
        "nm": "Roche LightCycler qPCR",
        "sc": "2021-05-30T10:12:22Z",
        "tr": "260415000",
        "tc": "Testzentrum Köln Hbf",
        "co": "DE",
        "is": "Robert Koch-Institut",
        "ci": "URN:UVCI:01DE/IBMT102/18Q12HTUJ7NPN4DXOXHVCWPLM#X",
    }
    entry.update(overrides)
    return entry


def recovery_entry(**overrides: Any) -> dict[str, Any]:
    entry = {
        "tg": "840539006",
        "fr": "2021-01-10",
        "co": "DE",
        "is": "Robert Koch-Institut",
        "df": "2021-05-29",
        "du": "2021-06-15",
        "ci": "URN:UVCI:01DE/5CWLU12RNOB9RXSEOP6FG8#W",
    }
    entry.update(overrides)
    return entry


def sample_dcc(**groups: Any) -> dict[str, Any]:
    """A DCC map; statement groups default to one vaccination unless given."""
    dcc: dict[str, Any] = {
        "ver": "1.3.0",
        "nam": {"fn": "Mustermann", "gn": "Erika", "fnt": "MUSTERMANN", "gnt": "ERIKA"},
        "dob": "1964-08-12",
    }
    dcc.update(groups or {"v": [vaccination_entry()]})
    return dcc


def sample_claims(
    dcc: dict[str, Any] | None = None,
    issuer: str = "DE",
    issued_at: int = ISSUED_AT,
    expires_at: int = EXPIRES_AT,
) -> dict[int, Any]:
    return {1: issuer, 4: expires_at, 6: issued_at, -260: {1: dcc if dcc is not None else sample_dcc()}}


# ─────────────────────── Envelope Builders ───────────────────────


def sign1(
    payload: bytes | None,
    signer: Signer | None = None,
    *,
    protected: dict[int, Any] | None = None,
    unprotected: dict[int, Any] | None = None,
    signature: bytes | None = None,
    tag: bool = True,
) -> bytes:
    """
    Encode a COSE_Sign1 message.

    By default the protected header carries the signer's alg and kid and the
    signature is computed over the real Sig_structure.
    """
    signer = signer or ec_signer()
    headers = protected if protected is not None else {1: int(signer.algorithm), 4: signer.kid}
    protected_bytes = cbor2.dumps(headers) if headers else b""
    if signature is None:
        to_be_signed = cbor2.dumps(["Signature1", protected_bytes, b"", payload if payload is not None else b""])
        signature = signer.sign(to_be_signed)
    message = [protected_bytes, unprotected or {}, payload, signature]
    return cbor2.dumps(cbor2.CBORTag(18, message) if tag else message)


def to_token(cose_bytes: bytes, *, zlib_wrapped: bool = True, prefix: str = "HC1:") -> str:
    if zlib_wrapped:
        compressed = zlib.compress(cose_bytes, 9)
    else:
        compressor = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
        compressed = compressor.compress(cose_bytes) + compressor.flush()
    encoded = base45.b45encode(compressed)
    return prefix + (encoded.decode("ascii") if isinstance(encoded, bytes) else encoded)


def make_token(claims: dict[int, Any] | None = None, signer: Signer | None = None, **kwargs: Any) -> str:
    """Full issuer chain: claims → signed COSE_Sign1 → HC1 token."""
    payload = cbor2.dumps(claims if claims is not None else sample_claims())
    return to_token(sign1(payload, signer, **kwargs))


# ─────────────────────── Fixtures ───────────────────────


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Drop any logging configuration a test installed (e.g. bound to a captured stream)."""
    yield
    structlog.reset_defaults()


@pytest.fixture()
def signer() -> Signer:
    return ec_signer()


@pytest.fixture()
def token(signer: Signer) -> str:
    """A well-formed, ES256-signed vaccination certificate token."""
    return make_token(signer=signer)


# ─────────────────────── Literal Fixtures ───────────────────────


def fixture_path(filename: str) -> Path:
    """
    Resolve the absolute path to a test fixture file.

    Raises FileNotFoundError if the fixture does not exist.
    """
    path = FIXTURES_DIR / filename
    if not path.exists():
        raise FileNotFoundError(f"Test fixture not found: {path}")
    return path


def fixture_token(filename: str) -> str:
    """A literal HC1 token stored one per file."""
    return fixture_path(filename).read_text(encoding="ascii").strip("\r\n")


def fixture_hex(filename: str) -> bytes:
    """Bytes stored as hex text (line breaks allowed)."""
    return bytes.fromhex(fixture_path(filename).read_text(encoding="ascii"))
