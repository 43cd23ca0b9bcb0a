from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    PROJECT_NAME: str = "Ward Monitor"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = ""  # local, dev, prod (from .env)

    # CORS (from .env, comma-separated)
    BACKEND_CORS_ORIGINS: List[str] = []

    # Logging & Sentry
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: str | None = None

    # Monitoring engine
    MONITOR_RULES_PATH: str | None = None  # JSON rules file, built-in rules when unset
    MONITOR_ALERT_HISTORY_LIMIT: int | None = None  # overrides the rules file cap
    MONITOR_INTERVAL_SECONDS: float = 30.0  # 0 disables the periodic pass

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )


settings = Settings()
