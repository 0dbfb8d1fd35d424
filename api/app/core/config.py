"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "Courtly"
    debug: bool = True
    secret_key: str = "dev-secret-change-in-production"
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://courtly:courtly@db:5432/courtly"
    database_echo: bool = False

    # Auth
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 30
    jwt_algorithm: str = "HS256"
    password_reset_expire_minutes: int = 30
    email_verification_expire_hours: int = 48

    # Email / SMTP
    smtp_host: str = "localhost"
    smtp_port: int = 1025
    smtp_from: str = "noreply@courtly.app"
    frontend_url: str = "http://localhost:3000"

    # Stripe (test mode)
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_connect_country: str = "US"
    stripe_currency: str = "usd"

    # Defaults for newly approved clubs
    default_timezone: str = "America/Los_Angeles"
    default_country: str = "USA"

    model_config = {"env_prefix": "CT_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
