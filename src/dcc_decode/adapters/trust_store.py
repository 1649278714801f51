"""
In-memory trust store — implements the KeyResolver port.

Built once from an already-parsed collection of TrustedCert records and
never mutated afterwards; the backing mapping is a read-only proxy, so a
single store can be shared by any number of threads without locking.
"""

from __future__ import annotations

import base64
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

import structlog

from dcc_decode.domain.models import TrustedCert
from dcc_decode.railway import ErrorCode, Reason, Result

log = structlog.get_logger()


def encode_key_id(key_id: bytes) -> str:
    """Key ids are conventionally shown as standard base64."""
    return base64.b64encode(key_id).decode("ascii")


class TrustStore:
    """Immutable mapping from key id to TrustedCert."""

    __slots__ = ("_certs",)

    def __init__(self, certs: Iterable[TrustedCert] = ()) -> None:
        by_kid: dict[bytes, TrustedCert] = {}
        for cert in certs:
            if cert.key_id in by_kid:
                # first entry wins
                log.warning(
                    "trust_store.duplicate_key_id",
                    kid=encode_key_id(cert.key_id),
                    kept_country=by_kid[cert.key_id].country,
                    skipped_country=cert.country,
                )
                continue
            by_kid[cert.key_id] = cert
        self._certs: Mapping[bytes, TrustedCert] = MappingProxyType(by_kid)

    def resolve(self, key_id: bytes) -> Result[TrustedCert]:
        """Look up a key id; CRYPTO_ERROR/KeyUnknown if it is not trusted."""
        cert = self._certs.get(key_id)
        if cert is None:
            return Result.failure(
                ErrorCode.CRYPTO_ERROR,
                Reason.KEY_UNKNOWN,
                f"key id {encode_key_id(key_id)} is not in the trust list",
                kid=encode_key_id(key_id),
            )
        return Result.success(cert)

    def __len__(self) -> int:
        return len(self._certs)

    def __contains__(self, key_id: object) -> bool:
        return key_id in self._certs

    def __iter__(self) -> Iterator[TrustedCert]:
        return iter(self._certs.values())

    def __repr__(self) -> str:
        return f"TrustStore({len(self._certs)} keys)"
