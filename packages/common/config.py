from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Strongly-typed settings model loaded from env / .env.

    Notes:
        - Critical secrets and DSNs must be provided via environment variables.
        - No insecure defaults are shipped; application will fail-fast if missing.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        protected_namespaces=()
    )

    ENV: str = Field(..., description="Deployment environment, e.g. dev/test/staging/prod")
    SERVICE_NAME: str = Field(default="safeschool", description="Service name")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")

    POSTGRES_DSN: str = Field(..., description="SQLAlchemy async DSN (postgresql+asyncpg / sqlite+aiosqlite)")
    SQL_ECHO: bool = Field(default=False, description="Echo SQL statements to the log")

    JWT_PUBLIC_KEY: str = Field(..., description="JWT public key (must be provided)")
    JWT_ALGORITHMS: list[str] = Field(default=["RS256"], description="Accepted JWT signing algorithms")
    OIDC_ISSUER: str = Field(..., description="OIDC issuer URL")
    OIDC_AUDIENCE: str = Field(..., description="OIDC audience")

    @property
    def is_test(self) -> bool:
        return self.ENV == "test"


@lru_cache()
def get_settings() -> Settings:
    """Return a cached singleton `Settings` instance."""
    return Settings()
