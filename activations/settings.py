from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from activations.domain.entities import ActivationKind


class Settings(BaseSettings):
    # App
    app_env: str = "dev"
    log_level: str = "INFO"

    # Infra
    store_backend: Literal["postgres", "redis"] = "postgres"
    database_url: str = "postgresql://app:app@db:5432/app"
    db_connect_timeout_seconds: int = 3
    db_statement_timeout_ms: int = 5000
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10
    redis_url: str = "redis://redis:6379/0"
    redis_socket_timeout_seconds: float = 5.0
    redis_key_prefix: str = "act:"

    # Expiry windows
    activation_expiry_seconds: int = 259200
    password_reset_expiry_seconds: int = 14400

    # Sweeping: (chance, out_of) per issue, and the worker's period
    sweep_lottery: tuple[int, int] | None = (2, 100)
    sweep_interval_seconds: float = 300.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    def expiry_for(self, kind: ActivationKind) -> int:
        if kind is ActivationKind.PASSWORD_RESET:
            return self.password_reset_expiry_seconds
        return self.activation_expiry_seconds


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
