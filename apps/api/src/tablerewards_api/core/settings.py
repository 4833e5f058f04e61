from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production", "test"] = "development"
    database_url: str = "sqlite+aiosqlite:///./tablerewards.db"
    database_echo: bool = False
    log_level: str = "INFO"

    # Tracing
    tracing_enabled: bool = True

    # Internal API security (auth provider hooks, operator tooling)
    internal_api_key: str = ""

    # Referral codes
    referral_code_length: int = Field(default=8, ge=6, le=20)
    referral_code_max_attempts: int = Field(default=10, ge=1)

    # Role invitations
    role_invitation_ttl_hours: int = Field(default=72, ge=1)

    # Birthday sweep
    birthday_rewards_timezone: str = "UTC"

    # Application URLs
    frontend_url: str = "http://localhost:3000"
    api_base_url: str = "http://localhost:8000"
    cors_origins: list[str] = Field(default_factory=list)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_origin_list(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple, set)):
            return [str(item).strip() for item in value if str(item).strip()]
        return []


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
