"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file and override existing env vars
load_dotenv(override=True)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Deployments API client
    api_base_url: str = "http://localhost:8000/v1"
    api_token: str | None = None
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    # Status polling
    poll_interval_seconds: float = Field(default=3.0, ge=0)
    dashboard_poll_interval_seconds: float = Field(default=5.0, ge=0)
    poll_max_consecutive_failures: int | None = Field(default=None, ge=1)
    dashboard_page_size: int = Field(default=50, ge=1, le=100)

    # Deployed app health checks
    health_check_timeout_seconds: float = Field(default=5.0, gt=0)

    # Vercel Deployment
    vercel_token: str = Field(default="")
    vercel_team_id: str | None = None
    vercel_deploy_real: bool = False  # Set to True to enable real Vercel deployment
    vercel_api_url: str = "https://api.vercel.com"

    # Standalone app template receiving injected bundles
    template_path: str | None = None

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    log_file: str | None = None

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
