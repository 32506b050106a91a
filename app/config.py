"""Application configuration using pydantic settings with structured sections."""
from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    url: str = "sqlite:///./donations.db"
    echo: bool = False


class GatewaySettings(BaseModel):
    provider: Literal["sandbox", "razorpay"] = "sandbox"
    key_id: str = ""
    key_secret: str = "sandbox-secret"
    base_url: str = "https://api.razorpay.com/v1"
    timeout_seconds: float = 10.0


class MailSettings(BaseModel):
    backend: Literal["log", "smtp"] = "log"
    host: str = "localhost"
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    from_address: str = "no-reply@donorbox.local"


class SchedulerSettings(BaseModel):
    enabled: bool = True
    reconciliation_interval_seconds: int = 5 * 60
    followup_interval_seconds: int = 30 * 60
    deferred_poll_seconds: int = 30
    deferred_check_delay_seconds: int = 10 * 60
    recent_window_hours: int = 24
    followup_age_hours: int = 2
    max_followup_emails: int = Field(default=2, ge=0)


class Settings(BaseSettings):
    """Top-level settings; nested sections are set with ``SECTION__FIELD``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    project_name: str = "Donorbox Donation Reconciliation API"
    api_prefix: str = "/api/v1"
    admin_email: str = "testing@alphaseam.com"
    log_level: str = "INFO"

    database: DatabaseSettings = DatabaseSettings()
    gateway: GatewaySettings = GatewaySettings()
    mail: MailSettings = MailSettings()
    scheduler: SchedulerSettings = SchedulerSettings()


@lru_cache()
def get_settings() -> Settings:
    return Settings()
