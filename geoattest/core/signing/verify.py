"""
Attestation Signing and Verification

Signs canonical payload bytes with ECDSA P-521 / SHA-512 and verifies them.

Signature Format:
    base64( r || s )

Where:
    - r, s: 66-byte big-endian integers (IEEE P1363 layout, 132 bytes total)
    - base64: standard alphabet with padding

This is the layout WebCrypto produces, so signatures interoperate with
browser clients. cryptography works in DER internally; conversion happens
at this boundary.

Curve, hash, canonical format and signature layout are fixed together as
SIGNATURE_SCHEME. Changing any of them breaks previously issued signatures
and requires a new scheme identifier.
"""

import asyncio
import base64
import logging
import re

from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from pydantic import BaseModel, ConfigDict

from geoattest.core.signing.canonical import CANONICAL_FORMAT, Payload, PayloadLike, canonicalize, to_payload
from geoattest.core.signing.keys import CURVE_NAME, HASH_NAME, SigningKey, VerifyingKey

logger = logging.getLogger(__name__)


SIGNATURE_SCHEME = "ecdsa-p521-sha512-p1363"

# ceil(521 / 8)
COORDINATE_BYTES = 66
SIGNATURE_BYTES = 2 * COORDINATE_BYTES

_WHITESPACE = re.compile(r"\s")


class SignedAttestation(BaseModel):
    """A payload with its signature, ready for transport."""

    model_config = ConfigDict(frozen=True)

    payload: Payload
    signature: str
    scheme: str = SIGNATURE_SCHEME


def _der_to_raw(der_signature: bytes) -> bytes:
    r, s = decode_dss_signature(der_signature)
    return r.to_bytes(COORDINATE_BYTES, "big") + s.to_bytes(COORDINATE_BYTES, "big")


def _raw_to_der(raw_signature: bytes) -> bytes:
    if len(raw_signature) != SIGNATURE_BYTES:
        raise ValueError(f"Invalid signature length: {len(raw_signature)} bytes (expected {SIGNATURE_BYTES})")
    r = int.from_bytes(raw_signature[:COORDINATE_BYTES], "big")
    s = int.from_bytes(raw_signature[COORDINATE_BYTES:], "big")
    return encode_dss_signature(r, s)


def decode_signature(signature_b64: str) -> bytes:
    """Strict base64 decode; ASCII whitespace is ignored like atob() does."""
    if not isinstance(signature_b64, str):
        raise TypeError(f"Signature must be a base64 string, got {type(signature_b64).__name__}")
    return base64.b64decode(_WHITESPACE.sub("", signature_b64), validate=True)


def sign_payload(payload: PayloadLike, key: SigningKey) -> str:
    """
    Sign a payload.

    A fresh ECDSA nonce is drawn on every call, so signing the same payload
    twice yields two different, equally valid signatures.

    Args:
        payload: Payload (or mapping with the four fields)
        key: Sign-only key handle

    Returns:
        Base64-encoded 132-byte r||s signature

    Raises:
        TypeError: If key is not a SigningKey
        pydantic.ValidationError: If the payload fields are invalid
    """
    if not isinstance(key, SigningKey):
        raise TypeError(f"sign_payload requires a SigningKey, got {type(key).__name__}")

    data = canonicalize(payload)
    raw = _der_to_raw(key.sign_bytes(data))
    return base64.b64encode(raw).decode("ascii")


def verify_signature(payload: PayloadLike, signature_b64: str, key: VerifyingKey) -> bool:
    """
    Verify a payload signature.

    Every failure (undecodable base64, wrong length, malformed payload,
    wrong key, tampered payload) yields False. The reason is logged at
    DEBUG level only and never surfaced to the caller.

    Args:
        payload: Payload (or mapping with the four fields)
        signature_b64: Base64-encoded r||s signature
        key: Verify-only key handle

    Returns:
        True only if the signature is valid for exactly these bytes and key

    Raises:
        TypeError: If key is not a VerifyingKey
    """
    if not isinstance(key, VerifyingKey):
        raise TypeError(f"verify_signature requires a VerifyingKey, got {type(key).__name__}")

    try:
        data = canonicalize(payload)
        der = _raw_to_der(decode_signature(signature_b64))
        return key.verify_bytes(der, data)
    except Exception as e:
        logger.debug(f"Signature verification failed: {type(e).__name__}: {e}")
        return False


async def sign_payload_async(payload: PayloadLike, key: SigningKey) -> str:
    """Run sign_payload in a worker thread so the event loop stays free."""
    return await asyncio.to_thread(sign_payload, payload, key)


async def verify_signature_async(payload: PayloadLike, signature_b64: str, key: VerifyingKey) -> bool:
    """Run verify_signature in a worker thread so the event loop stays free."""
    return await asyncio.to_thread(verify_signature, payload, signature_b64, key)


def create_attestation(payload: PayloadLike, key: SigningKey) -> SignedAttestation:
    """Sign a payload and bundle it with its signature."""
    p = to_payload(payload)
    return SignedAttestation(payload=p, signature=sign_payload(p, key))


def verify_attestation(attestation: SignedAttestation, key: VerifyingKey) -> bool:
    """Verify a bundled attestation; an unknown scheme is a failed verification."""
    if attestation.scheme != SIGNATURE_SCHEME:
        logger.debug(f"Unsupported signature scheme: {attestation.scheme}")
        return False
    return verify_signature(attestation.payload, attestation.signature, key)


def describe_scheme() -> dict:
    """The compatibility-relevant constants, for status endpoints and CLI output."""
    return {
        "scheme": SIGNATURE_SCHEME,
        "curve": CURVE_NAME,
        "hash": HASH_NAME,
        "canonical_format": CANONICAL_FORMAT,
        "signature_bytes": SIGNATURE_BYTES,
    }
