import logging
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""
    PROJECT_NAME: str = "Recipebook API"
    VERSION: str = "0.1.0"

    DATABASE_URL: str = "sqlite:///./recipebook.db"
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # Header set by the upstream auth proxy with the caller's user id
    USER_HEADER: str = "X-User-Id"

    # Number of diary entries embedded in a version's details
    RECENT_DIARY_ENTRIES: int = 5
    # "identity" matches list items by id first, "value" by deep equality only
    DIFF_MATCH_MODE: str = "identity"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()


def configure_logging(level: str | None = None):
    logger = logging.getLogger("recipebook")
    logger.setLevel((level or settings.LOG_LEVEL).upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s %(message)s")
        )
        logger.addHandler(handler)
    return logger
