# app/config.py
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # App
    APP_ENV: Literal["dev", "prod", "staging"] = "dev"
    PUBLIC_BASE_URL: str = ""  # used to build <Media> URLs for question images

    # Twilio
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_WHATSAPP_NUMBER: str = ""

    # Question corpus
    QUESTIONS_PATH: str = "data/questions.json"
    IMAGES_BASE_PATH: str = "data"
    TICKET_COUNT: int = 40

    # Sessions
    SESSION_TTL_MINUTES: int = 30
    MAX_SESSIONS: int = 5000
    SESSION_SWEEP_INTERVAL_SECONDS: int = 300  # 5 minutes

    # Caches
    CACHE_MAX_ENTRIES: int = 5000
    IMAGE_CACHE_MAX_MB: int = 50

    # Rate limiting (per user, sliding window)
    RATE_LIMIT_REQUESTS: int = 10
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Redis is optional; only the shared rate-limit backend uses it
    REDIS_URL: Optional[str] = None

    # read .env and ignore any extra keys so this doesn't break again
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
