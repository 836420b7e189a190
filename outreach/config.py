from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, read from the environment (DATABASE_URL, SECRET_KEY, ...)."""

    model_config = SettingsConfigDict(frozen=True, extra="ignore")

    database_url: str = "sqlite:///./outreach.db"
    secret_key: str = "CHANGE_ME_SUPER_SECRET"
    access_token_expire_minutes: int = 60 * 8  # 8 hours

    # bootstrap admin, created or promoted on startup when both are set
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    admin_name: str = "Admin User"

    log_level: str = "INFO"

    @field_validator("admin_email", "admin_password", mode="before")
    @classmethod
    def _blank_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper()


def load_settings() -> Settings:
    """Read settings from the environment. Unset variables keep the defaults."""
    return Settings()
