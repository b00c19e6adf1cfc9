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

    # Dataverse / Power Pages
    dataverse_tenant_id: str = Field(default="")
    dataverse_client_id: str = Field(default="")
    dataverse_client_secret: str = Field(default="")
    dataverse_authority_host: str = "https://login.microsoftonline.com"
    dataverse_api_version: str = "v9.2"
    dataverse_timeout_seconds: float = 30.0

    # Theme archives
    upload_max_file_size: int = 50 * 1024 * 1024
    allowed_archive_extensions: list[str] = Field(default_factory=lambda: [".zip"])
    archive_download_timeout_seconds: float = 60.0

    # Deployment pipeline
    max_concurrent_deployments: int = Field(default=2, ge=1)
    deployment_conflict_policy: Literal["reject", "supersede"] = "reject"
    recent_log_limit: int = 20
    website_url_template: str = "https://{website_id}.powerappsportals.com"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    log_directory: str = "logs"
    log_file_name: str = "theme-deployer.log"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def dataverse_credentials_configured(self) -> bool:
        return bool(
            self.dataverse_tenant_id
            and self.dataverse_client_id
            and self.dataverse_client_secret
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
