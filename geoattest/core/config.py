"""
Configuration Management

Centralized configuration using Pydantic Settings.
All settings loaded from environment variables with sensible defaults.
"""
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ignore extra environment variables that aren't defined in the model
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ============================================================
    # Key Material
    # ============================================================
    # Inline PEM text wins over a path; a path wins over CONFIG_DIR lookup.
    attest_private_key_pem: Optional[str] = Field(
        None, description="PKCS#8 private key PEM used by the signer"
    )
    attest_private_key_path: Optional[str] = Field(
        None, description="Path to PKCS#8 private key PEM (default: CONFIG_DIR/privkey.pem)"
    )
    attest_public_key_pem: Optional[str] = Field(
        None, description="SPKI public key PEM used by the verifier"
    )
    attest_public_key_path: Optional[str] = Field(
        None, description="Path to SPKI public key PEM (default: CONFIG_DIR/pubkey.pem)"
    )

    # ============================================================
    # Location Capture
    # ============================================================
    location_latitude: Optional[float] = Field(
        None, description="Fixed device latitude (static provider)"
    )
    location_longitude: Optional[float] = Field(
        None, description="Fixed device longitude (static provider)"
    )
    location_url: Optional[str] = Field(
        None, description="HTTP endpoint returning {latitude, longitude} JSON (e.g. gpsd bridge)"
    )
    location_timeout_seconds: float = Field(10.0, description="Maximum wait for a position fix")
    location_maximum_age_seconds: float = Field(
        60.0, description="Reuse a cached fix younger than this"
    )

    # ============================================================
    # API Configuration
    # ============================================================
    allowed_origins: str = Field(
        "http://localhost:5173,http://localhost:8000",
        description="Comma-separated CORS allowed origins"
    )
    api_port: int = Field(8000, description="API server port")

    # ============================================================
    # Logging Configuration
    # ============================================================
    log_level: str = Field("INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse allowed origins into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def has_static_location(self) -> bool:
        return self.location_latitude is not None and self.location_longitude is not None


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
