# backend/homepath/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

_DEV_SECRET = "dev-change-me"


class Settings(BaseSettings):
    """
    Environment-driven settings (DATABASE_URL, JWT_SECRET, ...); a local
    .env file is read when present.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "local"  # local|dev|prod
    app_version: str = "0.1.0"
    database_url: str = "sqlite:///./homepath.db"

    log_level: str = "INFO"
    sql_log_level: str = "WARNING"

    cors_allow_origins: list[str] | str = ["*"]

    # dev: X-User-Email header accepted (and auto-provisioned) when no bearer token is sent
    auth_mode: str = "dev"  # dev|jwt
    dev_auto_provision: bool = True
    dev_header_user_email: str = "X-User-Email"

    jwt_secret: str = _DEV_SECRET
    jwt_algorithm: str = "HS256"
    jwt_exp_minutes: int = 60 * 24 * 7

    # dashboard windows
    near_term_step_days: int = 7
    upcoming_event_days: int = 30
    activity_default_limit: int = 20
    activity_default_days: int = 7
    analytics_default_period: str = "6months"

    @property
    def is_prod(self) -> bool:
        return (self.app_env or "").strip().lower() in ("prod", "production")

    def model_post_init(self, __context) -> None:
        if not self.is_prod:
            return
        if self.auth_mode.strip().lower() == "dev":
            raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")
        if self.jwt_secret == _DEV_SECRET:
            raise ValueError("SECURITY: jwt_secret must be set in prod")
        if "*" in str(self.cors_allow_origins):
            raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
