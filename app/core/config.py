from pydantic_settings import BaseSettings
from typing import Optional, List

class Settings(BaseSettings):
    PROJECT_NAME: str = "Lecture AI Cache"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "change-me"

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]

    # Database Configuration
    DATABASE_HOST: Optional[str] = None
    DATABASE_PORT: str = "5432"
    DATABASE_USER: Optional[str] = None
    DATABASE_PASSWORD: Optional[str] = None
    DATABASE_NAME: Optional[str] = None

    DATABASE_URL: str = "sqlite:///./ai_cache.db"
    TEST_DATABASE_URL: Optional[str] = None
    AUTO_CREATE_TABLES: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    def __init__(self, **data):
        super().__init__(**data)
        if self.DATABASE_HOST:
            self.DATABASE_URL = (
                f'postgresql://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}'
                f'@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}'
            )

    # AI response cache
    AI_CACHE_COST_PER_MILLION_TOKENS: float = 0.075
    AI_CACHE_MAX_AGE_DAYS: int = 30
    AI_CACHE_CLEANUP_ENABLED: bool = True
    AI_CACHE_CLEANUP_HOUR: int = 3
    AI_CACHE_WRITE_RETRIES: int = 0
    AI_CACHE_WRITE_RETRY_BACKOFF_SECONDS: float = 0.2

    class Config:
        env_file = ".env"

settings = Settings()
