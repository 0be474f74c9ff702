"""Application configuration loaded from the environment."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

PACKAGE_DIR = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API
    app_name: str = "Doula CRM"
    debug: bool = False
    cors_origins: str = "*"

    # Database
    database_url: str | None = None
    data_dir: str = "data"

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False

    # Lists
    default_page_size: int = 50
    max_page_size: int = 200

    # Webhooks
    webhook_timeout_seconds: int = 30
    webhook_max_response_chars: int = 10000

    # Public site (referral links)
    public_site_url: str = "https://example.com"

    # Seed data (standard objects, navigation, workflow templates)
    seed_metadata_dir: str = str(PACKAGE_DIR / "data")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def resolved_database_url(self) -> str:
        """Database URL with the legacy postgres:// scheme rewritten."""
        url = self.database_url
        if not url:
            data_dir = Path(self.data_dir)
            data_dir.mkdir(parents=True, exist_ok=True)
            return f"sqlite:///{data_dir / 'doula_crm.db'}"
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url

    def cors_origin_list(self) -> list[str]:
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
