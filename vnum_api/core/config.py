from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


DEFAULT_JWT_SECRET = "fallback-secret-change-in-production"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -----------------------------
    # Hasura GraphQL data layer
    # -----------------------------
    HASURA_GRAPHQL_ENDPOINT: str
    HASURA_ADMIN_SECRET: str = ""
    HASURA_TIMEOUT_SECONDS: float = 15.0

    # -----------------------------
    # Tokens & passwords
    # -----------------------------
    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_EXPIRES_IN: str = "7d"
    JWT_REFRESH_EXPIRES_IN: str = "30d"
    PASSWORD_RESET_EXPIRES_IN: str = "1h"
    BCRYPT_ROUNDS: int = 10
    MIN_PASSWORD_LENGTH: int = 6

    # Rehash legacy plaintext passwords after a successful login
    LEGACY_PASSWORD_MIGRATION: bool = False

    # -----------------------------
    # Wallet / validity
    # -----------------------------
    DEFAULT_VALIDITY_DAYS: int = 365
    WALLET_UPDATE_ATTEMPTS: int = 3

    # -----------------------------
    # Email (password reset)
    # -----------------------------
    SMTP_SERVER: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "noreply@virtualnumber.com"
    EMAIL_FROM_NAME: str = "Virtual Number"

    # -----------------------------
    # Message broker
    # -----------------------------
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    VALIDITY_EXPIRY_INTERVAL_MINUTES: int = 60

    # -----------------------------
    # App Environment
    # -----------------------------
    FRONTEND_URL: str = "http://localhost:5173"
    CORS_ORIGIN: str = "http://localhost:5173"
    NODE_ENV: str = "development"
    LOG_LEVEL: str = "info"

    @property
    def is_development(self) -> bool:
        return self.NODE_ENV == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance to avoid reloading .env repeatedly"""
    return Settings()
