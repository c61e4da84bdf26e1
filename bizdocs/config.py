from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from functools import lru_cache


# Secrets that must never reach production
WEAK_SECRET_KEYS = {
    "changeme",
    "secret",
    "password",
    "development-secret-key-change-in-production",
    "test",
    "default",
}

MIN_PRODUCTION_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/bizdocs"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert postgresql:// to postgresql+asyncpg:// for async support."""
        if v and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Auth
    SECRET_KEY: str = "development-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120

    # CORS
    FRONTEND_URL: str = "http://localhost:5173"

    # Email (Brevo transactional API)
    BREVO_API_KEY: str | None = None
    EMAIL_FROM_ADDRESS: str = "no-reply@bizdocs.local"
    EMAIL_FROM_NAME: str = "bizdocs"

    # Documents
    INVOICE_DUE_DAYS: int = 30

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    DOCS_ENABLED: bool = True
    SQL_ECHO: bool = False

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Harden settings for production and staging."""
        if self.is_production:
            if self.SECRET_KEY in WEAK_SECRET_KEYS:
                raise ValueError("SECRET_KEY uses a known weak value")
            if len(self.SECRET_KEY) < MIN_PRODUCTION_SECRET_LENGTH:
                raise ValueError(
                    f"SECRET_KEY must be at least {MIN_PRODUCTION_SECRET_LENGTH} characters in production"
                )
            self.DEBUG = False
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT in ("production", "staging")

    @property
    def sqlalchemy_echo(self) -> bool:
        """SQL echo leaks bound parameters; never on in production."""
        return self.SQL_ECHO and not self.is_production


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
