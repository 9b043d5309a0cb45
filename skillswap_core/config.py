from typing import List, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./skillswap.db"

    # Bearer token verification (tokens are issued by the identity provider)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Application
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]

    # Chat & presence
    TYPING_IDLE_SECONDS: float = 2.0
    MESSAGE_PREVIEW_CHARS: int = 50
    MAX_MESSAGE_LENGTH: int = 4000

    # Scheduling
    MEETING_BASE_PATH: str = "/skillswap/meeting"
    MEETING_TOKEN_LENGTH: int = 10
    ALLOWED_SESSION_DURATIONS: Tuple[int, ...] = (15, 30, 45, 60, 90, 120)

    # Reviews
    MAX_FEEDBACK_LENGTH: int = 1000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()
