import logging

import pytz
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class CoreSettings(BaseSettings):
    ENV: str = Field(default="development", validation_alias="APP_ENV")
    APP_NAME: str = "fleetdesk"
    COMPANY_NAME: str = "WD Logistics"
    APP_BASE_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"

    SESSION_SECRET_KEY: str = "change-this-session-secret"
    SESSION_COOKIE_DOMAIN: str = ""
    BCRYPT_ROUNDS: int = 12

    REPORT_TIMEZONE: str = "Africa/Harare"
    DEFAULT_PERIOD: str = "1m"
    DASHBOARD_DEFAULT_PERIOD: str = "1m"
    REPORTS_DEFAULT_PERIOD: str = "1m"

    INVOICE_DUE_DAYS: int = 30

    AGENT_API_KEY: str = ""
    AGENT_URL: str = "http://localhost:3001"  # Only origin allowed on /api/agent/*
    CRON_SECRET: str = ""

    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "noreply@wdlogistics.example"

    WHATSAPP_API_URL: str = ""
    WHATSAPP_API_TOKEN: str = ""
    WHATSAPP_TIMEOUT_SECONDS: int = 15

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CoreSettings()


def report_timezone():
    """Business time zone for period bounds; falls back to UTC on a bad name."""
    try:
        return pytz.timezone(settings.REPORT_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        logger.warning("config: unknown REPORT_TIMEZONE=%s, using UTC", settings.REPORT_TIMEZONE)
        return pytz.utc


def is_production() -> bool:
    return (settings.ENV or "").strip().lower() in {"production", "prod"}
