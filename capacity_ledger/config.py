"""
Configuration de l'application / Application configuration.
Utilise pydantic-settings pour charger depuis .env ou variables d'environnement.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Capacity Ledger"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = True

    # Database - SQLite par défaut pour le développement
    # Database - SQLite by default for development
    DATABASE_URL: str = "sqlite+aiosqlite:///./capacity_ledger.db"
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 15.0

    # CORS - origines autorisées / allowed origins
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000", "http://localhost:8080"]

    # Rate Limiting
    RATE_LIMIT_BOOKING: str = "20/minute"
    RATE_LIMIT_CANCEL: str = "20/minute"
    RATE_LIMIT_DEFAULT: str = "60/minute"

    # Découpage des créneaux / Interval slicing
    INTERVAL_MINUTES: int = 30

    # Transactions du registre / Ledger transactions
    LEDGER_MAX_RETRIES: int = 5
    LEDGER_RETRY_BACKOFF_MS: int = 20
    # Ignoré sous SQLite (BEGIN IMMEDIATE) / Ignored on SQLite (BEGIN IMMEDIATE)
    LEDGER_ISOLATION_LEVEL: str = "REPEATABLE READ"

    # Surréservation volontaire (scénarios de test) / Deliberate overbooking (test scenarios)
    ALLOW_OVERBOOKING: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
