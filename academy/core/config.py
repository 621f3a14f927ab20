from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    PROJECT_NAME: str = "Academy API"
    API_STR: str = "/api"

    # Database
    DATABASE_URL: str = "postgresql+psycopg://postgres@localhost:5432/academy_db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False

    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Identity provider tokens (verified only, never issued in production)
    AUTH_JWT_SECRET: str = "AUTH_JWT_SECRET_CHANGE_ME"
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: Optional[str] = None
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Shared secret the external scheduler sends as a bearer token
    CRON_SECRET: Optional[str] = None

    # Hosted checkout gateway
    PAYMENT_GATEWAY_URL: str = "https://app.pakasir.com"
    PAYMENT_GATEWAY_PROJECT: str = ""
    PAYMENT_GATEWAY_API_KEY: str = ""
    PAYMENT_GATEWAY_METHOD: str = "qris"
    PAYMENT_GATEWAY_TIMEOUT: float = 30.0
    APP_URL: str = "http://localhost:3000"

    # Billing lifecycle
    PAYMENT_EXPIRY_HOURS: int = 24
    SUBSCRIPTION_PERIOD_DAYS: int = 30
    DEFAULT_GRACE_PERIOD_DAYS: int = 7
    RENEWAL_REMINDER_DAYS: int = 3
    RENEWAL_DEDUP_DAYS: int = 7
    MEETING_REMINDER_MIN_MINUTES: int = 30
    MEETING_REMINDER_MAX_MINUTES: int = 60

    # SMTP
    SMTP_TLS: bool = True
    SMTP_PORT: Optional[int] = None
    SMTP_HOST: Optional[str] = None
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    EMAILS_FROM_EMAIL: Optional[str] = None
    EMAILS_FROM_NAME: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"


settings = Settings()
