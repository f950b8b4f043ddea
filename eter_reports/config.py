"""
Configuration de l'application / Application configuration.
Utilise pydantic-settings pour charger depuis .env ou variables d'environnement.
"""

from pydantic_settings import BaseSettings

DEFAULT_SECRET_KEY = "change-me-in-production"


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "ETER Reports"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"

    # Database - SQLite par défaut pour le développement
    # Database - SQLite by default for development
    DATABASE_URL: str = "sqlite+aiosqlite:///./eter_reports.db"

    # CORS - origines autorisées / allowed origins
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:3001", "http://127.0.0.1:3000"]

    # JWT Authentication
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 24 * 60

    # Verrouillage de compte / Account lockout
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCK_TIME_MINUTES: int = 30

    # Rate Limiting
    RATE_LIMIT_LOGIN: str = "5/minute"
    RATE_LIMIT_SUBMIT: str = "10/hour"

    # Signatures enregistrées / Saved signature files
    UPLOAD_DIR: str = "./uploads"

    # Exports PDF / PDF exports
    MAX_REPORTS_PER_BATCH: int = 50
    MAX_DATE_RANGE_DAYS: int = 365
    STATS_DEFAULT_DAYS: int = 30
    PDF_ORGANISATION: str = "Établissement des Travaux d'Entretien Routier -ETER-"
    PDF_DEPARTMENT: str = "Direction des Approvisionnements et Logistique -DAL-"

    # Compte admin par défaut / Default admin account
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = "admin123"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
