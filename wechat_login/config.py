"""
Configuration module for the WeChat login service.

This module uses Pydantic Settings to load and validate environment variables
for the WeChat web authorization app, session cookies, provider endpoints
and server options.

Environment variables are loaded from .env file or system environment.
"""

import secrets
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Provider credentials are allowed to be empty so the service can boot and
    report what is missing; see validate_configuration().
    """

    # =========================================================================
    # WeChat App Configuration
    # =========================================================================

    WECHAT_APP_ID: str = Field(
        default="",
        description="WeChat app id (sent as client_id)",
    )

    WECHAT_APP_SECRET: Optional[str] = Field(
        None,
        description="WeChat app secret (sent as client_secret)",
    )

    WECHAT_REDIRECT_URI: str = Field(
        default="",
        description="Callback URL registered with WeChat (e.g., https://example.com/auth/callback)",
    )

    WECHAT_DEFAULT_SCOPE: str = Field(
        default="profile",
        description="Scope requested when /auth/login is called without one",
        min_length=1,
    )

    # =========================================================================
    # Provider Endpoints
    # =========================================================================

    WECHAT_AUTHORIZE_URL: str = "https://open.weixin.qq.com/connect/oauth2/authorize"
    WECHAT_TOKEN_URL: str = "https://api.weixin.qq.com/sns/oauth2/access_token"
    WECHAT_REFRESH_URL: str = "https://api.weixin.qq.com/sns/oauth2/refresh_token"
    WECHAT_USERINFO_URL: str = "https://api.weixin.qq.com/sns/userinfo"
    WECHAT_CHECK_TOKEN_URL: str = "https://api.weixin.qq.com/sns/auth"

    PROVIDER_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Deadline for each outbound provider call in seconds",
        ge=1,
        le=60,
    )

    # =========================================================================
    # Session Configuration
    # =========================================================================

    SESSION_SECRET: str = Field(
        default_factory=lambda: secrets.token_hex(32),
        description="Secret key for signing session cookies (random per process if unset)",
        min_length=32,
    )

    SESSION_JWT_ALGORITHM: str = Field(
        default="HS256",
        description="Session cookie signing algorithm (HS256, HS384 or HS512)",
    )

    SESSION_MAX_AGE_SECONDS: int = Field(
        default=24 * 60 * 60,
        description="Session and cookie lifetime in seconds",
        ge=60,
    )

    SESSION_COOKIE_NAME: str = Field(
        default="wechat_login_sid",
        min_length=1,
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    APP_ENV: str = Field(
        default="development",
        description="Deployment environment (development, test or production)",
    )

    HOST: str = "0.0.0.0"

    PORT: int = Field(default=3000, ge=1, le=65535)

    LOG_LEVEL: str = "INFO"

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
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
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def session_cookie_secure(self) -> bool:
        """Cookies are only marked Secure in production."""
        return self.is_production

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parse and return ALLOWED_ORIGINS as a list.

        Returns:
            List of allowed origin URLs, or empty list if not configured.
        """
        if not self.ALLOWED_ORIGINS:
            return []

        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("SESSION_JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """
        Validate the cookie signing algorithm is one of the HMAC algorithms.

        Raises:
            ValueError: If algorithm is not supported
        """
        allowed_algorithms = ["HS256", "HS384", "HS512"]

        if v not in allowed_algorithms:
            raise ValueError(
                f"JWT algorithm must be one of {allowed_algorithms}, got: {v}"
            )

        return v

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("development", "test", "production"):
            raise ValueError(
                f"APP_ENV must be development, test or production, got: {v}"
            )
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Cached so that settings (and the random SESSION_SECRET fallback) are
    created only once per process.

    Raises:
        ValidationError: If environment variables are invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate critical configuration settings and return a status report.

    Called during application startup; problems are logged, not raised, so
    that the landing page and health check stay reachable.

    Returns:
        Dictionary with validation status and any warnings.

    Example:
        >>> status = validate_configuration(get_settings())
        >>> if not status["valid"]:
        ...     print(status["errors"])
    """
    errors = []
    warnings = []

    if not settings.WECHAT_APP_ID:
        errors.append("WECHAT_APP_ID is not set")

    if not settings.WECHAT_REDIRECT_URI:
        errors.append("WECHAT_REDIRECT_URI is not set")

    if not settings.WECHAT_APP_SECRET:
        warnings.append("WECHAT_APP_SECRET is not set (code exchange will be rejected)")

    if "SESSION_SECRET" not in settings.model_fields_set:
        warnings.append(
            "SESSION_SECRET is not set; a random secret is used and sessions "
            "will not survive a restart or be shared between workers"
        )

    if settings.is_production and settings.WECHAT_REDIRECT_URI.startswith("http://"):
        warnings.append("WECHAT_REDIRECT_URI uses plain http in production")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "session_max_age_seconds": settings.SESSION_MAX_AGE_SECONDS,
        "cookie_secure": settings.session_cookie_secure,
    }
