from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List
import os


class Settings(BaseSettings):
    # OpenAI-compatible completion API
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_VISION_MODEL: str = "gpt-4o-mini"
    OPENAI_TEMPERATURE: float = 0.7
    OPENAI_TIMEOUT: float = 30.0
    OPENAI_MAX_RETRIES: int = 2
    SYSTEM_PROMPT: Optional[str] = None

    # Context assembly
    HISTORY_WINDOW: int = 30
    IMAGE_DESCRIPTION_BUDGET: int = 500
    DOCUMENT_SUMMARY_BUDGET: int = 1200

    # Chunk scoring
    CHUNK_SIZE: int = 800
    MIN_QUERY_TOKEN_LENGTH: int = 3
    TOP_K_CHUNKS: int = 3

    # Document processing
    SUMMARIZE_DOCUMENTS: bool = True
    SUMMARY_INPUT_CHARS: int = 12000
    ALLOWED_DOCUMENT_TYPES: List[str] = [".pdf", ".docx", ".txt"]
    ALLOWED_IMAGE_TYPES: List[str] = [".png", ".jpg", ".jpeg", ".webp", ".gif"]

    # Attachment storage
    UPLOAD_DIRECTORY: str = "./data/uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    FILE_MAX_AGE_SECONDS: int = 24 * 60 * 60
    FILE_SWEEP_INTERVAL_SECONDS: int = 60 * 60

    # CORS Settings
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # Database Settings
    DATABASE_URL: str = "sqlite:///./data/app.db"
    DB_TYPE: str = "sqlite"

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Create data directory if it doesn't exist
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        os.makedirs("data", exist_ok=True)


settings = Settings()


def get_settings() -> Settings:
    return settings
