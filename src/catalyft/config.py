"""Configuration settings for the Catalyft coaching backend."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


# __file__ = src/catalyft/config.py
# .parent.parent.parent = project root
PACKAGE_ROOT = Path(__file__).parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # CORS (functions are called from the web dashboard and the mobile app)
    cors_origins: list[str] = ["*"]

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""

    # WHOOP OAuth
    whoop_client_id: str = ""
    whoop_client_secret: str = ""
    whoop_api_base: str = "https://api.prod.whoop.com"
    app_url: str = "http://localhost:3000"

    # Google Fit OAuth
    google_fit_client_id: str = ""
    google_fit_client_secret: str = ""

    # OpenAI
    openai_api_key: str = ""
    llm_model_fast: str = "gpt-4o-mini"
    llm_model_smart: str = "gpt-4o"

    # Sync windows
    whoop_recovery_days: int = 30
    whoop_activity_days: int = 7
    sync_concurrency: int = 8

    # Scheduled jobs (hours are UTC)
    scheduler_enabled: bool = False
    sync_hour_utc: int = 5
    adjust_hour_utc: int = 6
    injury_hour_utc: int = 7
    summary_hour_utc: int = 8

    # Offline queue
    local_store_path: Path | None = None

    def model_post_init(self, __context) -> None:
        """Set default paths after initialization."""
        if self.local_store_path is None:
            self.local_store_path = PROJECT_ROOT / "catalyft_local.db"

    @property
    def whoop_redirect_uri(self) -> str:
        return f"{self.app_url.rstrip('/')}/oauth/whoop"

    @property
    def google_fit_redirect_uri(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/functions/v1/google-fit-oauth"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
