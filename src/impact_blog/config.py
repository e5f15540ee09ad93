"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # App settings
    app_name: str = "Impact Blog API"
    debug: bool = False
    environment: str = "development"
    secret_key: str  # Required, no default

    # Database
    database_url: str = "sqlite+aiosqlite:///./impact_blog.db"

    # JWT Authentication
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24 * 30

    # Uploads
    upload_dir: str = "./uploads"
    uploads_url_prefix: str = "/uploads"
    max_upload_bytes: int = 5 * 1024 * 1024

    # Pagination
    default_page_size: int = 10
    max_page_size: int = 100

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str, info) -> str:
        """Validate that secret_key is secure."""
        if not v:
            raise ValueError("SECRET_KEY is required")

        # In production mode, ensure secret key is strong
        debug = info.data.get("debug", False)
        if not debug:
            if len(v) < 32:
                raise ValueError("SECRET_KEY must be at least 32 characters in production mode")
            if v in ("change-me-in-production", "secret", "password", "changeme"):
                raise ValueError("SECRET_KEY must not be a common weak value")

        return v

    @field_validator("uploads_url_prefix")
    @classmethod
    def validate_uploads_url_prefix(cls, v: str) -> str:
        """Normalize the uploads prefix to a leading slash and no trailing slash."""
        v = "/" + v.strip("/")
        if v == "/":
            raise ValueError("UPLOADS_URL_PREFIX must not be the site root")
        return v

    @property
    def is_production(self) -> bool:
        """Whether the app runs in production mode."""
        return self.environment.lower() == "production"

    def validate_runtime_config(self) -> list[str]:
        """Validate runtime configuration and return warnings."""
        warnings = []

        # Warn about debug mode in production
        if self.debug:
            warnings.append("DEBUG mode is enabled - should be disabled in production")

        if self.is_production and self.database_url.startswith("sqlite"):
            warnings.append("SQLite database configured in production")

        if "*" in self.cors_origins:
            warnings.append("CORS_ORIGINS allows any origin")

        return warnings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
