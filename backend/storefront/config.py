from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    # storage timeouts (seconds)
    DB_TIMEOUT_SECONDS: int = 15
    LOCK_TIMEOUT_SECONDS: int = 10

    # money is kept in kobo (1 NGN = 100 kobo)
    FREE_SHIPPING_THRESHOLD_KOBO: int = 5_000_000
    SHIPPING_FEE_KOBO: int = 250_000

    ORDER_NUMBER_PREFIX: str = "HS"
    ORDER_NUMBER_MAX_ATTEMPTS: int = 5

    PROOF_UPLOAD_DIR: str = "./uploads/proofs"
    PROOF_BASE_URL: str = "/uploads/proofs"
    PROOF_MAX_BYTES: int = 10 * 1024 * 1024
    PROOF_ALLOWED_TYPES: List[str] = [
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "application/pdf",
    ]

    PAYMENT_ATTEMPT_TTL_SECONDS: int = 7 * 24 * 3600
    PAYMENT_ATTEMPT_PURGE_INTERVAL_SECONDS: int = 3600

    BANK_NAME: str = "UBA (United Bank for Africa)"
    BANK_ACCOUNT_NUMBER: str = "1028154357"
    BANK_ACCOUNT_NAME: str = "HAIR STOP"

    SESSION_COOKIE_NAME: str = "session_id"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
