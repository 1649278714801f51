"""
Ports — Protocol-based interfaces for the pipeline's collaborators.

These define WHAT the decode pipeline needs without specifying HOW:

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing), so a test double or an
alternative implementation satisfies it simply by having the methods.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from dcc_decode.domain.models import TrustedCert
from dcc_decode.railway import Result


@runtime_checkable
class KeyResolver(Protocol):
    """
    Port: resolve a COSE key identifier to a trusted signing key.

    Returns Result.failure(CRYPTO_ERROR, KeyUnknown) when the id is not trusted.
    Implementations must be read-only so one instance can serve concurrent decodes.
    """

    def resolve(self, key_id: bytes) -> Result[TrustedCert]: ...


@runtime_checkable
class SignatureVerifier(Protocol):
    """
    Port: check a COSE signature over a rebuilt Sig_structure.

    Returns Result.success(True/False) for a completed check, and a
    CRYPTO_ERROR failure when the check cannot run (unsupported algorithm,
    key of the wrong type).
    """

    def verify(self, sig_structure: bytes, signature: bytes, cert: TrustedCert) -> Result[bool]: ...
