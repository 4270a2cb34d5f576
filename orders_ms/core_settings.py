from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings
from typing import List


class ConfigError(RuntimeError):
    """Raised when the process environment does not describe a runnable service."""


class Settings(BaseSettings):
    PORT: int = Field(gt=0, lt=65536)
    DATABASE_URL: str = Field(min_length=1)
    # Comma separated, e.g. "nats://nats-1:4222,nats://nats-2:4222"
    NATS_SERVERS: str

    SERVICE_NAME: str = "orders-ms"
    SERVICE_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"
    PRODUCTS_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)
    RUN_MIGRATIONS: bool = True

    class Config:
        env_file = ".env"
        extra = "ignore"

    @field_validator("NATS_SERVERS")
    @classmethod
    def _check_nats_servers(cls, value: str) -> str:
        servers = [s.strip() for s in value.split(",") if s.strip()]
        if not servers:
            raise ValueError("at least one NATS server is required")
        for server in servers:
            if "://" not in server:
                raise ValueError(f"'{server}' is not a server URL")
        return ",".join(servers)

    @field_validator("LOG_LEVEL")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level '{value}'")
        return level

    @property
    def nats_servers(self) -> List[str]:
        return self.NATS_SERVERS.split(",")


def load_settings(**overrides) -> Settings:
    """Build the settings once at process start.

    Keyword overrides take precedence over the environment, which is handy
    for tests.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigError(f"Config validation error: {e}") from e
