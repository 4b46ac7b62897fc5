"""
Configuration module for the Tunnel Gateway.

This module uses Pydantic Settings to load and validate environment variables
for the backend tunnel, the inbound shared secret, the listening socket and
CORS settings.

Environment variables are loaded from .env file or system environment.
Components never read the environment themselves: the settings object is
built once at startup and injected through ``app.state``.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Required configuration is missing or malformed."""


class BackendConfig(BaseModel):
    """
    Immutable address and credential of the single backend behind the tunnel.

    Attributes:
        base_url: Backend origin without trailing slash
        shared_secret: Bearer token sent verbatim on every outbound call
    """

    model_config = ConfigDict(frozen=True)

    base_url: str
    shared_secret: str = ""


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    # =========================================================================
    # Backend Tunnel Configuration
    # =========================================================================

    TUNNEL_URL: HttpUrl = Field(
        ...,
        description="Backend base URL (e.g., http://localhost:3020)",
    )

    TUNNEL_SHARED_SECRET: Optional[str] = Field(
        None,
        description="Bearer secret sent to the backend on every tunnel call",
    )

    # =========================================================================
    # Inbound Authentication
    # =========================================================================

    GATEWAY_SHARED_SECRET: Optional[str] = Field(
        None,
        description="Bearer secret clients must present on /api routes",
    )

    # =========================================================================
    # Gateway Server Configuration
    # =========================================================================

    GATEWAY_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the gateway server",
    )

    GATEWAY_PORT: int = Field(
        default=3020,
        description="Port to bind the gateway server",
        ge=1,
        le=65535,
    )

    BASE_DIR: Optional[str] = Field(
        None,
        description="Base directory the backend serves files from (informational)",
    )

    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def tunnel_url_str(self) -> str:
        """
        Get tunnel URL as string without trailing slash.
        """
        return str(self.TUNNEL_URL).rstrip("/")

    @property
    def backend_config(self) -> BackendConfig:
        """
        Build the immutable backend configuration handed to the tunnel client.
        """
        return BackendConfig(
            base_url=self.tunnel_url_str,
            shared_secret=self.TUNNEL_SHARED_SECRET or "",
        )

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parse and return ALLOWED_ORIGINS as a list.
        """
        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate LOG_LEVEL is a standard logging level name.

        Raises:
            ValueError: If the level is unknown
        """
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        level = v.upper()
        if level not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}, got: {v}")
        return level


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ConfigurationError: If required environment variables are missing
                            or invalid.
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid gateway configuration: {e}") from e


# =============================================================================
# Configuration Helpers
# =============================================================================

def describe_secret(secret: Optional[str]) -> str:
    """
    Describe a secret without revealing it.

    Example:
        >>> describe_secret("abc123")
        'set (6 chars)'
        >>> describe_secret(None)
        '(not set)'
    """
    if not secret:
        return "(not set)"
    return f"set ({len(secret)} chars)"


def validate_configuration(settings: Settings) -> dict:
    """
    Validate critical configuration settings and return a status report.

    Args:
        settings: Settings to check

    Returns:
        Dictionary with validation status, errors and warnings.
    """
    errors = []
    warnings = []

    if not settings.TUNNEL_SHARED_SECRET:
        errors.append("TUNNEL_SHARED_SECRET is not set")

    if not settings.GATEWAY_SHARED_SECRET:
        errors.append("GATEWAY_SHARED_SECRET is not set")

    for name in ("TUNNEL_SHARED_SECRET", "GATEWAY_SHARED_SECRET"):
        value = getattr(settings, name)
        if value and len(value) < 32:
            warnings.append(f"{name} is shorter than recommended (32+ chars)")

    if (
        settings.TUNNEL_SHARED_SECRET
        and settings.TUNNEL_SHARED_SECRET == settings.GATEWAY_SHARED_SECRET
    ):
        warnings.append("Inbound and tunnel secrets are identical")

    if "localhost" in settings.tunnel_url_str or "127.0.0.1" in settings.tunnel_url_str:
        warnings.append("Tunnel URL points to localhost (may cause issues in containers)")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "tunnel_url": settings.tunnel_url_str,
        "tunnel_secret": describe_secret(settings.TUNNEL_SHARED_SECRET),
        "gateway_secret": describe_secret(settings.GATEWAY_SHARED_SECRET),
    }
