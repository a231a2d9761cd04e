from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# shared/shared/auth/config.py → repository root
_ROOT_ENV = Path(__file__).resolve().parents[3] / ".env"


class AuthSettings(BaseSettings):
    """JWT verification settings, read from JWT_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        env_file=(str(_ROOT_ENV), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    secret: str = "change-me"
    algorithm: str = "HS256"
    issuer: str = "circle-identity"
    audience: str = "circle-services"
    leeway_seconds: int = 30
