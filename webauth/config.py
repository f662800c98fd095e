"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. The .env file is gitignored; .env.example provides a safe
template for developers.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from webauth.config import settings
    print(settings.SECRET_KEY)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the auth service.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign JWT tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "WebAuth API"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/webauth.db"

    # --- Authentication ---
    # REQUIRED: No default, forces the developer to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    JWT_EXPIRES_IN_DAYS: int = 90
    # Lifetime of the "jwt" session cookie, in days
    JWT_COOKIE_EXPIRES_IN: int = 90
    PASSWORD_RESET_EXPIRE_MINUTES: int = 10

    # --- Email ---
    # "console" logs outgoing mail, "smtp" relays it through SMTP_HOST.
    # Unset: "smtp" in production, "console" everywhere else.
    EMAIL_BACKEND: str | None = None
    EMAIL_FROM: str = "WebAuth <no-reply@example.com>"
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_USE_TLS: bool = True

    # --- Site ---
    # Public site the emails link to, e.g. "https://example.com".
    # Unset: the host the request came in on.
    FRONTEND_URL: str | None = None

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
