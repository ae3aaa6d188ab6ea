"""
FastAPI Backend for GeoAttest

Serves the verifying public key and checks signed location attestations.
"""
from fastapi import FastAPI, Request as FastAPIRequest
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import logging
import re
import uuid

from geoattest.api.routes import verify
from geoattest.core.config import get_settings
from geoattest.core.signing.verify import describe_scheme

settings = get_settings()
logging.basicConfig(level=settings.log_level.upper(), format=settings.log_format)
logger = logging.getLogger(__name__)
error_logger = logging.getLogger("api.errors")


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        return response


# Create FastAPI app
app = FastAPI(
    title="GeoAttest API",
    description="Verification of ECDSA-signed location attestations",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)


_PEM_BLOCK = re.compile(r"-----BEGIN [A-Z ]+-----.*?-----END [A-Z ]+-----", re.DOTALL)


def _sanitize_error_message(message: str) -> str:
    """
    Scrub key material from exception messages before logging.

    PEM blocks and KEY=value pairs are replaced with placeholders.
    """
    sanitized = _PEM_BLOCK.sub("[REDACTED_PEM]", message)
    sanitized = re.sub(
        r'(ATTEST_PRIVATE_KEY_PEM|ATTEST_PUBLIC_KEY_PEM|password|secret|token|key)["\']?\s*[=:]\s*["\']?[^"\'\s,;]+',
        r'\1=[REDACTED]',
        sanitized,
        flags=re.IGNORECASE,
    )
    return sanitized


# Global exception handler for safe error messages
@app.exception_handler(Exception)
async def global_exception_handler(request: FastAPIRequest, exc: Exception):
    """
    Log detailed errors internally but return a generic message to clients.
    """
    error_id = str(uuid.uuid4())
    sanitized_message = _sanitize_error_message(str(exc))

    error_logger.error(
        f"Error {error_id}: {type(exc).__name__}: {sanitized_message}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "path": request.url.path,
            "method": request.method,
            "client": request.client.host if request.client else None
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "An internal error occurred",
            "error_id": error_id,
            "message": "The error has been logged. If you need assistance, reference this error ID."
        }
    )


@app.on_event("startup")
async def startup_event():
    """Parse the verifying key once at startup"""
    key = verify.get_verifying_key()
    if key is not None:
        logger.info(f"✅ Verification key loaded ({key.fingerprint})")
    else:
        logger.warning("⚠️ No verification key available - /api/verify will return 503")


# Security headers middleware (add first - outermost)
app.add_middleware(SecurityHeadersMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

# Include routers
app.include_router(verify.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "GeoAttest API",
        "version": "1.0.0",
        "status": "running",
        "signing": describe_scheme(),
    }


@app.get("/health")
async def health():
    """Health check"""
    return {
        "status": "ok",
        "verification_key_loaded": verify.get_verifying_key() is not None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("geoattest.api.main:app", host="0.0.0.0", port=settings.api_port)
