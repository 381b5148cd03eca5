from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings; every field can be overridden through environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    secret_key: str = "CHANGE_ME"
    algorithm: str = Field("HS256", validation_alias="JWT_ALGORITHM")
    jwt_issuer: str = "vehicle-marketplace-api"
    jwt_audience: str = "vehicle-marketplace-web"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    email_token_expire_hours: int = 24

    database_url: str = "sqlite:///./app.db"
    token_cleanup_interval_seconds: int = 3600
    log_level: str = "INFO"

    frontend_url: str = "http://localhost:3000"
    listing_publication_days: int = 90

    rate_limit_enabled: bool = True
    login_rate_limit: str = "5/minute"
    email_rate_limit: str = "3/minute"
    register_rate_limit: str = "10/minute"

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_timeout_seconds: float = 10.0
    email_sender: str = "no-reply@vehicle-marketplace.local"
    email_sender_name: str = "Vehicle Marketplace"

    admin_username: Optional[str] = None
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None


settings = Settings()
