"""
Pydantic schemas for FastAPI endpoints
"""
from typing import Optional
from pydantic import BaseModel, Field

from geoattest.core.signing.canonical import Payload
from geoattest.core.signing.verify import SIGNATURE_SCHEME


class PublicKeyResponse(BaseModel):
    """Public key for verifying pages. Empty string when none is configured."""
    publicKey: str
    fingerprint: Optional[str] = None
    scheme: str = SIGNATURE_SCHEME


class VerifyRequest(BaseModel):
    """A signed location attestation to check"""
    payload: Payload
    signature: str = Field(..., description="Base64 r||s ECDSA P-521 signature")
    scheme: str = SIGNATURE_SCHEME


class VerifyResponse(BaseModel):
    """Verification outcome. Never explains why a signature was rejected."""
    valid: bool
    scheme: str = SIGNATURE_SCHEME
    key_fingerprint: str
    verified_at: str
