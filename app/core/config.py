# app/core/config.py

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Values come from the process environment; a local .env is read when present.
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # The environment mode: 'local' or 'prod'
    ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    # --- Production URLs (for inside Docker) ---
    DATABASE_URL_PROD: str = ""
    KAFKA_BOOTSTRAP_SERVERS_PROD: str = ""

    # --- Local Development URLs (for running locally) ---
    DATABASE_URL_LOCAL: str
    KAFKA_BOOTSTRAP_SERVERS_LOCAL: str = "localhost:9092"

    # Other secrets
    JWT_SECRET: str
    INTERNAL_API_KEY: str

    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # --- Stripe ---
    STRIPE_SECRET_KEY: str = ""
    STRIPE_PUBLISHABLE_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_API_VERSION: str = "2023-10-16"
    STRIPE_MAX_NETWORK_RETRIES: int = 2

    KAFKA_ENABLED: bool = True
    RATE_LIMIT_ENABLED: bool = True

    # --- Booking policy ---
    DEFAULT_CURRENCY: str = "PHP"
    MIN_BOOKING_HOURS: int = 1
    MAX_BOOKING_HOURS: int = 24
    BOOKING_PAYMENT_WINDOW_MINUTES: int = 30
    PAID_PENDING_GRACE_MINUTES: int = 10
    CAPACITY_WARNING_WINDOW_MINUTES: int = 15

    # --- Background processing ---
    SCHEDULER_ENABLED: bool = True
    BOOKING_SWEEP_INTERVAL_MINUTES: int = 5
    WEBHOOK_PROCESSING_TIMEOUT_SECONDS: float = 20.0

    # --- Dynamic Properties ---
    @property
    def DATABASE_URL(self) -> str:
        return (
            self.DATABASE_URL_LOCAL if self.ENV == "local" else self.DATABASE_URL_PROD
        )

    @property
    def KAFKA_BOOTSTRAP_SERVERS(self) -> str:
        return (
            self.KAFKA_BOOTSTRAP_SERVERS_LOCAL
            if self.ENV == "local"
            else self.KAFKA_BOOTSTRAP_SERVERS_PROD
        )


# Create a single instance of the settings
settings = Settings()
