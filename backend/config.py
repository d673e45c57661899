"""
Learn2Go Configuration Settings
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Learn2Go"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Database - MySQL
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "learn2go"
    DB_POOL_SIZE: int = 10

    # JWT Settings
    JWT_SECRET_KEY: str = "learn2go-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    # Encryption for stored API keys
    ENCRYPTION_KEY: str = "learn2go-encryption-key-32bytes!---"

    # CORS
    CORS_ORIGINS: list = ["http://localhost", "http://127.0.0.1", "http://localhost:5173"]

    # Lesson flow
    QUIZ_PASS_THRESHOLD: int = 70
    QUIZ_RESULT_DELAY_SECONDS: float = 2.0
    GAME_COMPLETE_DELAY_SECONDS: float = 2.0
    DASHBOARD_PATH: str = "/dashboard"

    # Localization defaults
    DEFAULT_LANGUAGE: str = "en"
    DEFAULT_COUNTRY: str = "US"
    SUPPORTED_LANGUAGES: list = ["en", "hi", "te", "ta", "bn", "mr", "gu", "kn", "ml", "pa",
                                 "es", "fr", "de", "pt", "zh", "ja"]

    # Narration
    NARRATION_RATE: float = 0.8
    NARRATION_PITCH: float = 1.0
    NARRATION_VOLUME: float = 0.8
    OPENAI_API_KEY: Optional[str] = None
    TTS_VOICE: str = "alloy"

    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()
