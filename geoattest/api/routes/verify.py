"""
Attestation verification endpoints
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from geoattest.api.schemas import PublicKeyResponse, VerifyRequest, VerifyResponse
from geoattest.core.location import current_timestamp
from geoattest.core.signing.keys import (
    KeyImportError,
    VerifyingKey,
    load_verifying_key_from_settings,
    public_key_to_pem,
)
from geoattest.core.signing.verify import SIGNATURE_SCHEME, verify_signature_async

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/verify", tags=["verify"])

# Parsed once, reused for every request
_verifying_key: Optional[VerifyingKey] = None


def get_verifying_key() -> Optional[VerifyingKey]:
    """
    Return the configured verifying key, or None if it cannot be loaded.

    A missing or malformed key is logged, not raised, so the public-key page
    still renders (with an empty key).
    """
    global _verifying_key
    if _verifying_key is None:
        try:
            _verifying_key = load_verifying_key_from_settings()
        except (OSError, KeyImportError) as e:
            logger.error(f"Failed to load verification key: {e}")
            return None
    return _verifying_key


def reset_verifying_key() -> None:
    """Forget the cached key (after settings reload)."""
    global _verifying_key
    _verifying_key = None


@router.get("/public-key", response_model=PublicKeyResponse)
async def get_public_key(key: Optional[VerifyingKey] = Depends(get_verifying_key)):
    """Public key PEM for verifying pages"""
    if key is None:
        return PublicKeyResponse(publicKey="")
    return PublicKeyResponse(publicKey=public_key_to_pem(key), fingerprint=key.fingerprint)


@router.post("", response_model=VerifyResponse)
async def verify_attestation(
    request: VerifyRequest,
    key: Optional[VerifyingKey] = Depends(get_verifying_key),
):
    """Check a signed location attestation against the configured public key"""
    if key is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Verification key not configured",
        )

    if request.scheme != SIGNATURE_SCHEME:
        valid = False
    else:
        valid = await verify_signature_async(request.payload, request.signature, key)

    logger.info(
        f"Attestation {'verified' if valid else 'rejected'}: "
        f"timestamp={request.payload.timestamp} key={key.fingerprint}"
    )
    return VerifyResponse(
        valid=valid,
        key_fingerprint=key.fingerprint,
        verified_at=current_timestamp(),
    )
