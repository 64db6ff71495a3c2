from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Dict, Optional


class Settings(BaseSettings):
    # App
    app_name: str = "Approval Workflow Engine"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./approvalflow.db"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Celery
    celery_broker_url: Optional[str] = None
    celery_result_backend: Optional[str] = None

    @property
    def celery_broker(self) -> str:
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        return self.celery_result_backend or self.redis_url

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"
    log_to_file: bool = False

    # Workflow
    installation_settings_owner: str = "installation"
    default_language: str = "en"
    max_page_size: int = 100

    # Reminders
    reminder_window_hours: int = 48
    reminder_interval_seconds: int = 3600

    # Module status sync (module type -> endpoint URL)
    module_sync_endpoints: Dict[str, str] = {}
    module_sync_timeout: float = 5.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APPROVALFLOW_",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
