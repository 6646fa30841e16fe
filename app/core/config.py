from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "KASI Incident Ticketing API"

    # csv | sql | memory
    STORAGE_BACKEND: str = "csv"
    DATA_DIR: str = "./data"
    DATABASE_URL: str = "sqlite:///./data/tickets.db"

    UPLOADS_DIR: str = "./data/uploads"
    ATTACHMENT_URL_PREFIX: str = "/uploads"

    API_PREFIX: str = ""
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
