"""Application configuration via Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve .env from backend/ regardless of CWD
_ENV_FILE = Path(__file__).resolve().parents[3] / ".env"


class Settings(BaseSettings):
    """Central configuration loaded from environment variables / .env file."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./merchant_onboarding.db"

    # Auth / JWT (admin tokens are issued by the platform auth layer)
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"

    # Credentials
    temp_password_length: int = 12
    password_special_chars: str = "!@#$%^&*"

    # Setup tokens
    setup_token_ttl_hours: int = 72
    setup_token_bytes: int = 32

    # Bulk actions
    bulk_max_retries: int = 3

    # Notifications
    sendgrid_api_key: str = ""
    email_from: str = "noreply@example.com"
    email_from_name: str = "Merchant Onboarding"
    notification_max_retries: int = 3
    notification_backoff_seconds: float = 1.0

    # CORS / Frontend
    cors_origins: str = "http://localhost:3000"
    frontend_url: str = "http://localhost:3000"

    # General
    debug: bool = True

    model_config = {"env_file": str(_ENV_FILE), "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list.

        In debug mode, returns ["*"] to allow any origin.
        """
        if self.debug:
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def setup_url(self, token: str) -> str:
        return f"{self.frontend_url.rstrip('/')}/merchant/account-setup/{token}"

    @property
    def login_url(self) -> str:
        return f"{self.frontend_url.rstrip('/')}/merchant/login"


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
