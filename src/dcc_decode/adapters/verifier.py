"""
Signature verifier — implements the SignatureVerifier port with `cryptography`.

Dispatch is by the trusted certificate's COSE algorithm:

  ES256 / ES384 / ES512   ECDSA on P-256 / P-384 / P-521 with SHA-2.
                          COSE carries the raw `r || s` pair; it is
                          re-encoded as a DER Ecdsa-Sig-Value first.
  PS256 / PS384 / PS512   RSASSA-PSS, MGF1 with the same hash, salt
                          length equal to the digest length (RFC 8230).
  EdDSA                   Ed25519.

A wrong signature is Success(False). Not being able to run the check at
all (unknown algorithm, key of the wrong type) is a CRYPTO_ERROR failure.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from dcc_decode.domain.models import CoseAlgorithm, TrustedCert, algorithm_name
from dcc_decode.railway import DecodeFailure, ErrorCode, Reason, Result

_Check = Callable[[Any, bytes, bytes], None]


def _ecdsa(curve: type[ec.EllipticCurve], hash_type: type[hashes.HashAlgorithm]) -> tuple[type, _Check]:
    def check(key: ec.EllipticCurvePublicKey, signature: bytes, message: bytes) -> None:
        if not isinstance(key.curve, curve):
            raise DecodeFailure.of(
                ErrorCode.CRYPTO_ERROR,
                Reason.KEY_TYPE_MISMATCH,
                f"key is on curve {key.curve.name}, expected {curve.name}",
            )
        size = (key.curve.key_size + 7) // 8
        if len(signature) != 2 * size:
            raise InvalidSignature(f"raw ECDSA signature must be {2 * size} bytes, got {len(signature)}")
        r = int.from_bytes(signature[:size], "big")
        s = int.from_bytes(signature[size:], "big")
        key.verify(encode_dss_signature(r, s), message, ec.ECDSA(hash_type()))

    return ec.EllipticCurvePublicKey, check


def _pss(hash_type: type[hashes.HashAlgorithm]) -> tuple[type, _Check]:
    def check(key: rsa.RSAPublicKey, signature: bytes, message: bytes) -> None:
        algorithm = hash_type()
        key.verify(
            signature,
            message,
            padding.PSS(mgf=padding.MGF1(algorithm), salt_length=algorithm.digest_size),
            algorithm,
        )

    return rsa.RSAPublicKey, check


def _ed25519(key: ed25519.Ed25519PublicKey, signature: bytes, message: bytes) -> None:
    key.verify(signature, message)


_ROUTINES: dict[int, tuple[type, _Check]] = {
    CoseAlgorithm.ES256: _ecdsa(ec.SECP256R1, hashes.SHA256),
    CoseAlgorithm.ES384: _ecdsa(ec.SECP384R1, hashes.SHA384),
    CoseAlgorithm.ES512: _ecdsa(ec.SECP521R1, hashes.SHA512),
    CoseAlgorithm.PS256: _pss(hashes.SHA256),
    CoseAlgorithm.PS384: _pss(hashes.SHA384),
    CoseAlgorithm.PS512: _pss(hashes.SHA512),
    CoseAlgorithm.EDDSA: (ed25519.Ed25519PublicKey, _ed25519),
}

SUPPORTED_ALGORITHMS = frozenset(_ROUTINES)


class CryptographySignatureVerifier:
    """
    Verify COSE signatures with PyCA cryptography.

    Stateless; one instance can be shared by concurrent decodes.
    """

    def verify(self, sig_structure: bytes, signature: bytes, cert: TrustedCert) -> Result[bool]:
        routine = _ROUTINES.get(cert.algorithm)
        if routine is None:
            return Result.failure(
                ErrorCode.CRYPTO_ERROR,
                Reason.UNSUPPORTED_ALGORITHM,
                f"algorithm {algorithm_name(cert.algorithm)} is not supported",
                algorithm=cert.algorithm,
            )
        key_type, check = routine
        if not isinstance(cert.public_key, key_type):
            return Result.failure(
                ErrorCode.CRYPTO_ERROR,
                Reason.KEY_TYPE_MISMATCH,
                f"{type(cert.public_key).__name__} cannot verify {algorithm_name(cert.algorithm)}",
                algorithm=cert.algorithm,
            )

        return Result.from_computation(
            lambda: _run(check, cert.public_key, signature, sig_structure),
            ErrorCode.CRYPTO_ERROR,
            "Signature check could not run",
        )


def _run(check: _Check, key: Any, signature: bytes, message: bytes) -> bool:
    try:
        check(key, signature, message)
    except InvalidSignature:
        return False
    return True
