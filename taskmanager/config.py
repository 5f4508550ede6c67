"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # ==========================================================================
    # Sessions (signed cookie)
    # ==========================================================================

    session_secret: str = "dev-session-secret-change-in-production"
    session_cookie_name: str = "auth_token"
    session_max_age_hours: int = 24

    # ==========================================================================
    # Identity provider (Supabase)
    # ==========================================================================

    supabase_url: str = ""
    supabase_jwt_secret: str = ""  # HS256 fallback
    supabase_jwks_url: str = ""    # Defaults to {supabase_url}/auth/v1/jwks
    jwt_audience: str = "authenticated"

    # ==========================================================================
    # Discord
    # ==========================================================================

    discord_bot_secret: str = ""
    discord_public_key: str = ""
    discord_signature_window_ms: int = 60_000
    discord_link_code_ttl_seconds: int = 300

    # ==========================================================================
    # Rate limits (per window, per client)
    # ==========================================================================

    rate_limit_window_seconds: int = 900
    session_rate_limit: int = 10       # POST /auth/session, per IP
    link_code_rate_limit: int = 5      # link code generation, per user

    # ==========================================================================
    # Admin
    # ==========================================================================

    super_admin_email: str = ""
    super_admin_email_case_sensitive: bool = False

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def jwt_issuer(self) -> str:
        """Expected issuer reference for identity provider tokens."""
        if not self.supabase_url:
            return ""
        return f"{self.supabase_url.rstrip('/')}/auth/v1"

    @property
    def jwks_url(self) -> str:
        if self.supabase_jwks_url:
            return self.supabase_jwks_url
        if self.supabase_url:
            return f"{self.supabase_url.rstrip('/')}/auth/v1/jwks"
        return ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
