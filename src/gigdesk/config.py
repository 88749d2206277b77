from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Gigdesk"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 5000
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/gigdesk.db"
    data_dir: Path = Path("./data")

    session_ttl_min: int = 60
    password_hash_iterations: int = 240_000
    withdrawal_mode: str = "delete"

    bootstrap_admin_username: str = ""
    bootstrap_admin_email: str = ""
    bootstrap_admin_password: str = ""

    cors_origins: str = "http://localhost:3000"

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("withdrawal_mode")
    @classmethod
    def validate_withdrawal_mode(cls, value: str) -> str:
        allowed = {"delete", "soft"}
        if value not in allowed:
            raise ValueError(f"withdrawal_mode must be one of {sorted(allowed)}")
        return value

    @field_validator("session_ttl_min", "password_hash_iterations")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be positive")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def bootstrap_admin_enabled(self) -> bool:
        return bool(self.bootstrap_admin_email and self.bootstrap_admin_password)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
