"""Application configuration."""

from os import getenv

from pydantic import BaseModel


class Settings(BaseModel):
    """Runtime settings for the application."""

    app_name: str = "volunteer ledger API"
    app_env: str = getenv("APP_ENV", "dev")
    debug: bool = getenv("DEBUG", "0") == "1"
    database_url: str = getenv("DATABASE_URL", "sqlite:///./volunteer_ledger.db")
    jwt_secret_key: str = getenv("JWT_SECRET_KEY", "dev-only-change-me-to-a-long-random-secret")
    jwt_algorithm: str = getenv("JWT_ALGORITHM", "HS256")
    jwt_expire_minutes: int = int(getenv("JWT_EXPIRE_MINUTES", "60"))
    tx_max_attempts: int = int(getenv("TX_MAX_ATTEMPTS", "3"))
    tx_retry_backoff_ms: int = int(getenv("TX_RETRY_BACKOFF_MS", "20"))
    work_hour_reason_max_length: int = int(getenv("WORK_HOUR_REASON_MAX_LENGTH", "500"))
    idempotency_key_max_length: int = int(getenv("IDEMPOTENCY_KEY_MAX_LENGTH", "128"))
    default_page_size: int = int(getenv("DEFAULT_PAGE_SIZE", "20"))
    max_page_size: int = int(getenv("MAX_PAGE_SIZE", "100"))


settings: Settings = Settings()
