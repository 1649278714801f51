"""
dcc_decode — EU Digital Covid Certificate (HC1) decoder and verifier.

Turns an `HC1:` token (as scanned from a QR code) into a typed certificate
record: Base45 → deflate → CBOR → COSE_Sign1 → eHN health certificate
schema. The signature is optionally checked against a trust list of
Document Signer keys; a failed check never prevents decoding.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
