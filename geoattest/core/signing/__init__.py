"""
Location Attestation Signing Module

ECDSA P-521 / SHA-512 signatures over canonical location payloads.
A client signs "I was at (lat, lon) at time T with message M"; a verifier
checks it against the matching public key.
"""

from geoattest.core.signing.keys import (
    SigningKey,
    VerifyingKey,
    KeyImportError,
    InvalidKeyFormat,
    KeyParseError,
    import_private_key,
    import_public_key,
    public_key_to_pem,
    load_private_key,
    load_public_key,
)
from geoattest.core.signing.canonical import (
    Payload,
    CANONICAL_FORMAT,
    canonicalize,
    round_coordinate,
)
from geoattest.core.signing.verify import (
    SIGNATURE_SCHEME,
    SignedAttestation,
    sign_payload,
    verify_signature,
    sign_payload_async,
    verify_signature_async,
    create_attestation,
    verify_attestation,
)

__all__ = [
    # Keys
    "SigningKey",
    "VerifyingKey",
    "KeyImportError",
    "InvalidKeyFormat",
    "KeyParseError",
    "import_private_key",
    "import_public_key",
    "public_key_to_pem",
    "load_private_key",
    "load_public_key",
    # Canonicalization
    "Payload",
    "CANONICAL_FORMAT",
    "canonicalize",
    "round_coordinate",
    # Sign / verify
    "SIGNATURE_SCHEME",
    "SignedAttestation",
    "sign_payload",
    "verify_signature",
    "sign_payload_async",
    "verify_signature_async",
    "create_attestation",
    "verify_attestation",
]
